# Core package - persistence layer used by the bot
# - db.py: Database handle and schema
# - identity.py: wallet <-> platform account links
# - entitlements.py: payments and time-boxed tier grants
# - marketplace.py: products, stock and orders

from .config import Config
from .db import Database
from .errors import X402Error, StoreUnavailableError, IdentityConflictError, InvalidAmountError
from .identity import Identity, IdentityStore
from .entitlements import EntitlementLedger, EntitlementStatus, Payment
from .marketplace import Marketplace, Product, Order
from .utility import now_ts, fmt, fmt_secs, fmt_base_units
