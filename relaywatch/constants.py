"""Relay API paths, default relay catalog and consensus constants."""

# Relay endpoints (https://flashbots.github.io/relay-specs/)
GET_VALIDATORS_ENDPOINT = "/relay/v1/builder/validators"
CHECK_VALIDATOR_REGISTRATION = "/relay/v1/data/validator_registration"
GET_DELIVERED_PAYLOADS = "/relay/v1/data/bidtraces/proposer_payload_delivered"
GET_BUILDER_BLOCKS_RECEIVED = "/relay/v1/data/bidtraces/builder_blocks_received"

# Statuses a relay answers with when a pubkey has no registration
NOT_REGISTERED_STATUSES = frozenset({400, 404})

# Relays cap bidtrace pages at 500 rows
MAX_BIDTRACE_LIMIT = 500

DEFAULT_RELAYS = {
    "ultrasound": "https://0xa1559ace749633b997cb3fdacffb890aeebdb0f5a3b6aaa7eeeaf1a38af0a8fe88b9e4b1f61f236d2e64d95733327a62@relay.ultrasound.money",
    "flashbots": "https://0xac6e77dfe25ecd6110b8e780608cce0dab71fdd5ebea22a16c0205200f2f8e2e3ad3b71d3499c54ad14d6c21b41a37ae@boost-relay.flashbots.net",
    "aestus": "https://0xa15b52576bcbf1072f4a011c0f99f9fb6c66f3e1ff321f11f461d15e31b1cb359caa092c71bbded0bae5b5ea401aab7e@aestus.live",
    "agnostic": "https://0xa7ab7a996c8584251c8f925da3170bdfd6ebc75d50f5ddc4050a6fdc77f2a3b5fce2cc750d0865e05d7228af97d69561@agnostic-relay.net",
    "bloxroute-max-profit": "https://0x8b5d2e73e2a3a55c6c87b8b6eb92e0149a125c852751db1422fa951e42a09b82c142c3ea98d0d9930b056a3bc9896b8f@bloxroute.max-profit.blxrbdn.com",
    "bloxroute-regulated": "https://0xb0b07cd0abef743db4260b0ed50619cf6ad4d82064cb4fbec9d3ec530f7c5e6793d9f286c4e082c0244ffb9f2658fe88@bloxroute.regulated.blxrbdn.com",
    "titan": "https://0x8c4ed5e24fe5c6ae21018437bde147693f68cda427cd1122cf20819c30eda7ed74f72dece09bb313f2a1855595ab677d@titanrelay.xyz",
}

# Alternate spellings and groups; values are canonical relay names
RELAY_ALIASES = {
    "ultra-sound": ["ultrasound"],
    "ultrasound-money": ["ultrasound"],
    "fb": ["flashbots"],
    "agnostic-gnosis": ["agnostic"],
    "bloxroute": ["bloxroute-max-profit", "bloxroute-regulated"],
    "bloxroute-max": ["bloxroute-max-profit"],
    "max-profit": ["bloxroute-max-profit"],
    "regulated": ["bloxroute-regulated"],
    "titanrelay": ["titan"],
}

# Ethereum consensus layer constants
SECONDS_PER_SLOT = 12
SLOTS_PER_EPOCH = 32

PUBKEY_LENGTH = 48
ADDRESS_LENGTH = 20
