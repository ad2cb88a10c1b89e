"""Capability checks shared by every route that mutates attachments."""

from shared.models.document import Attachment
from shared.models.identity import Identity


def can_remove_attachment(identity: Identity, attachment: Attachment) -> bool:
    """Admins may remove any attachment, everybody else only their own uploads."""
    if identity.is_admin:
        return True
    return identity.user_id == attachment.owner_user_id
