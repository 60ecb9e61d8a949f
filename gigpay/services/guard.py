"""Authorization guard deciding which gig party may act."""
from __future__ import annotations

from enum import Enum

from gigpay.models.gig import Gig
from gigpay.models.profile import Profile, ProfileRole
from gigpay.utils.errors import Unauthorized


class GigRole(str, Enum):
    """Party of a gig an action is reserved to."""

    CLIENT = "client"
    FREELANCER = "freelancer"


def is_party(actor: Profile, gig: Gig, role: GigRole) -> bool:
    if role is GigRole.CLIENT:
        return gig.client_id == actor.id
    if role is GigRole.FREELANCER:
        return gig.freelancer_id is not None and gig.freelancer_id == actor.id
    raise ValueError(f"Unknown gig role: {role!r}")


def authorize(actor: Profile, gig: Gig, required: GigRole) -> None:
    """Raise ``Unauthorized`` unless ``actor`` is the gig's ``required`` party.

    Must run before any further read or write touching the gig.
    """

    if not is_party(actor, gig, required):
        raise Unauthorized(
            f"Only the gig's {required.value} can perform this action.",
            details={"gig_id": gig.id},
        )


def authorize_participant(actor: Profile, gig: Gig) -> None:
    """Allow either party of the gig (read access to its ledger)."""

    if not (is_party(actor, gig, GigRole.CLIENT) or is_party(actor, gig, GigRole.FREELANCER)):
        raise Unauthorized("Only the gig's client or freelancer can view this resource.", details={"gig_id": gig.id})


def authorize_acceptance(actor: Profile, gig: Gig) -> None:
    """A gig is accepted by a freelancer profile that is not its client."""

    if actor.role is not ProfileRole.FREELANCER:
        raise Unauthorized("Only freelancer profiles can accept gigs.")
    if gig.client_id == actor.id:
        raise Unauthorized("A client cannot accept their own gig.")


def require_profile_role(actor: Profile, role: ProfileRole) -> None:
    if actor.role is not role:
        raise Unauthorized(f"Only {role.value} profiles can perform this action.")


__all__ = ["GigRole", "is_party", "authorize", "authorize_participant", "authorize_acceptance", "require_profile_role"]
