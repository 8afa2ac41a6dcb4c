from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from iam.models import IamRole, IamRolePermission
from iam.services import PermissionCache


@receiver(post_save, sender=IamRolePermission)
@receiver(post_delete, sender=IamRolePermission)
def invalidate_role_permissions_on_grant_change(sender, instance, **kwargs):
    PermissionCache.from_settings().invalidate(instance.role_id)


@receiver(post_delete, sender=IamRole)
def invalidate_role_permissions_on_role_delete(sender, instance, **kwargs):
    PermissionCache.from_settings().invalidate(instance.pk)
