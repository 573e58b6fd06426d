"""Branch business rules: equivalences and contact targets."""

from typing import Dict

from quote_routing.core.exceptions import ConfigurationError
from quote_routing.schemas.routing import RoutingBranchKey

WHATSAPP_BY_BRANCH: Dict[RoutingBranchKey, str] = {
    RoutingBranchKey.AVELLANEDA: "5491140830416",
    RoutingBranchKey.LANUS: "5491136942482",
    RoutingBranchKey.DOCK_SUD: "5491140830416",
    RoutingBranchKey.LEJANOS: "5491140830416",
}

# Branches that exist as geographic points but are served by another office.
BRANCH_EQUIVALENCES: Dict[RoutingBranchKey, RoutingBranchKey] = {
    RoutingBranchKey.DOCK_SUD: RoutingBranchKey.AVELLANEDA,
}


def _check_contact_table() -> None:
    missing = [key.value for key in RoutingBranchKey if not WHATSAPP_BY_BRANCH.get(key)]
    if missing:
        raise ConfigurationError(f"Missing WhatsApp contact for branches: {', '.join(missing)}")


_check_contact_table()


def canonical_branch(branch: RoutingBranchKey) -> RoutingBranchKey:
    """User-facing branch for a geographic one."""
    return BRANCH_EQUIVALENCES.get(branch, branch)


def get_redirect_url_for_branch(branch: RoutingBranchKey) -> str:
    return f"https://wa.me/{WHATSAPP_BY_BRANCH[branch]}"
