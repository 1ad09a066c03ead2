from embyhub.models.server import Server
from embyhub.models.panel_identity import PanelIdentity
from embyhub.models.subscription import SubscriptionEntry

__all__ = ["Server", "PanelIdentity", "SubscriptionEntry"]
