# Importing every model registers it on Base.metadata
from app.models.property import Property  # noqa: F401
from app.models.user_profile import UserProfile  # noqa: F401
from app.models.token_offering import TokenOffering  # noqa: F401
from app.models.purchase_request import TokenPurchaseRequest  # noqa: F401
from app.models.investment import TokenInvestment  # noqa: F401
from app.models.listing import TokenListing  # noqa: F401
from app.models.notification import Notification  # noqa: F401
from app.models.ledger_event import LedgerEvent  # noqa: F401
