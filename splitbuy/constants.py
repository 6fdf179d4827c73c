"""Global constants for the splitbuy application."""

# Collection names
GROUP_BUYS_COLLECTION = "groupBuys"
PROFILES_COLLECTION = "profiles"
CHATS_COLLECTION = "chats"
USERS_COLLECTION = "users"
LISTINGS_COLLECTION = "listings"
LISTING_DRAFTS_COLLECTION = "listingDrafts"

# Chat system messages
SYSTEM_SENDER_ID = "system"
MESSAGE_TYPE_PURCHASE_REQUEST = "purchase_request"
MESSAGE_TYPE_PURCHASE_UPDATE = "purchase_update"

# Proof uploads
MAX_PROOF_SIZE = 10 * 1024 * 1024
PROOF_STORAGE_PREFIX = "proofs"

# Reviews
MIN_RATING = 1
MAX_RATING = 5

# Listing drafts
LISTING_DRAFT_TTL_SECONDS = 15 * 60
