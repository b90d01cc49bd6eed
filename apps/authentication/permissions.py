from rest_framework import permissions


class HasRole(permissions.BasePermission):
    """
    Grants access to authenticated users whose role is in ``allowed_roles``.

    Use ``HasRole.for_roles(...)`` to build a concrete permission class.
    """

    allowed_roles: tuple[str, ...] = ()
    message = "You do not have the required role for this action."

    def has_permission(self, request, view):
        user = request.user
        return bool(
            user
            and user.is_authenticated
            and getattr(user, "role", None) in self.allowed_roles
        )

    @classmethod
    def for_roles(cls, *roles: str) -> type["HasRole"]:
        name = "Is" + "Or".join(role.capitalize() for role in roles)
        return type(name, (cls,), {"allowed_roles": tuple(roles)})


IsAdmin = HasRole.for_roles("admin")
IsAffiliate = HasRole.for_roles("affiliate")
IsAdminOrAffiliate = HasRole.for_roles("admin", "affiliate")
