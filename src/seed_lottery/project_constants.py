"""
Immutable rules of the seed lottery.

These values define what a round checks and how hard it leans on public
infrastructure. Changing the derivation constants changes which addresses
a given seed maps to.
"""

GAME_NAME = "Seed Lottery Game"

# 128 bits of entropy -> 12 BIP39 words
MNEMONIC_STRENGTH = 128
MNEMONIC_LANGUAGE = "english"

# BIP84 native segwit, mainnet: m/84'/0'/0'/0/i
BIP84_PURPOSE = 84
BIP84_COIN_TYPE = 0
BIP84_ACCOUNT = 0
BIP84_CHANGE = 0

# Addresses derived per round
ADDRESS_COUNT = 30

# Cap used for the single derivation retry
FALLBACK_ADDRESS_COUNT = 10

# Cosmetic progress steps reported before the first balance query
PREAMBLE_STEPS = (
    "Generating random seed...",
    "Deriving master key...",
    "Generating first address...",
    "Preparing address checks...",
)

# Pause between balance queries, keeps us under provider rate limits
PACING_DELAY_S = 0.2

# LUD-21 verify polling
VERIFY_POLL_INTERVAL_S = 3.0
DEFAULT_VERIFY_TIMEOUT_S = 600.0

DEFAULT_HTTP_TIMEOUT_S = 10.0

# Merchant defaults
DEFAULT_LN_ADDRESS = "dios@lawallet.ar"
DEFAULT_AMOUNT_SATS = 2025

# Balance providers, tried in this order
BLOCKSTREAM_ADDRESS_URL = "https://blockstream.info/api/address/{address}"
MEMPOOL_ADDRESS_URL = "https://mempool.space/api/address/{address}"
BLOCKCHAIN_INFO_BALANCE_URL = "https://blockchain.info/q/addressbalance/{address}?cors=true"

EXPLORER_ADDRESS_URL = "https://mempool.space/address/{address}"

LNURLP_WELL_KNOWN_URL = "https://{domain}/.well-known/lnurlp/{user}"

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store",
    "Pragma": "no-cache",
}
