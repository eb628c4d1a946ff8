"""Session identity and the channels derived from it."""

from dataclasses import dataclass

from sessionlink.domain.shared_kernel import ValueObject

GENERAL_CHANNEL = "general"


def user_channel(user_id: str | int) -> str:
    return f"user:{user_id}"


def role_channel(role: str) -> str:
    return f"role:{role}"


def org_channel(organization_type: str) -> str:
    return f"org:{organization_type}"


@dataclass(frozen=True)
class SessionIdentity(ValueObject):
    """Who the session belongs to, as known by the identity subsystem."""

    user_id: str | int
    role: str | None = None
    organization_type: str | None = None
    token: str | None = None


def channels_for_identity(identity: SessionIdentity | None) -> tuple[str, ...]:
    """Return the channels a session should be subscribed to for ``identity``.

    Pure function of the identity; an anonymous session has no channels.
    """
    if identity is None:
        return ()
    channels = [GENERAL_CHANNEL, user_channel(identity.user_id)]
    if identity.role:
        channels.append(role_channel(identity.role))
    if identity.organization_type:
        channels.append(org_channel(identity.organization_type))
    return tuple(channels)
