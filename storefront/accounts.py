import logging
from functools import wraps

from django.contrib.auth import get_user_model
from django.http import JsonResponse

from .errors import InvalidOperation, PermissionDenied
from .models import AccessRequest, Profile
from .procedures import call, procedure

logger = logging.getLogger(__name__)

Role = Profile.Role
STAFF_ROLES = (Role.SUPERADMIN, Role.SELLER, Role.BACKOFFICE, Role.ANALYST)


def roles_of(user) -> list[str]:
    if user is None or not getattr(user, "is_authenticated", False):
        return []
    profile, _ = Profile.objects.get_or_create(user=user)
    roles = list(profile.roles or [])
    if user.is_superuser and Role.SUPERADMIN not in roles:
        roles.append(Role.SUPERADMIN)
    return roles


def has_role(user, *roles) -> bool:
    user_roles = roles_of(user)
    return any(role in user_roles for role in roles)


def require_role(user, *roles) -> None:
    if not has_role(user, *roles):
        raise PermissionDenied(
            "No tiene permisos para realizar esta operación.",
            hint=f"Roles requeridos: {', '.join(roles)}",
        )


def role_required(*roles):
    """View decorator: JSON 401/403 unless the user holds one of ``roles``."""

    def decorator(view):
        @wraps(view)
        def wrapper(request, *args, **kwargs):
            if not request.user.is_authenticated:
                return JsonResponse({"error": "authentication_required", "message": "Debe iniciar sesión."}, status=401)
            try:
                require_role(request.user, *roles)
            except PermissionDenied as exc:
                return JsonResponse(exc.as_dict(), status=exc.http_status)
            return view(request, *args, **kwargs)

        return wrapper

    return decorator


def _normalize_roles(roles) -> list[str]:
    unique = []
    for role in roles or []:
        if role not in Role.values:
            raise InvalidOperation(f"Rol inválido: {role}")
        if role not in unique:
            unique.append(role)
    return unique


@procedure("list_users_as_admin")
def _list_users_as_admin():
    users = get_user_model().objects.select_related("profile").order_by("email", "id")
    result = []
    for user in users:
        profile = getattr(user, "profile", None)
        result.append({"id": user.pk, "email": user.email, "roles": list(profile.roles) if profile else []})
    return result


@procedure("update_user_roles")
def _update_user_roles(acting_user_id, user_id, roles):
    acting = get_user_model().objects.get(pk=acting_user_id)
    if not has_role(acting, Role.SUPERADMIN):
        raise PermissionDenied("Permission denied: You must be a superadmin to update user roles.")
    if int(acting_user_id) == int(user_id):
        raise PermissionDenied("No puede modificar sus propios roles.")
    profile, _ = Profile.objects.select_for_update().get_or_create(user_id=user_id)
    profile.roles = _normalize_roles(roles)
    profile.save(update_fields=["roles"])


@procedure("approve_access_request")
def _approve_access_request(request_id):
    access_request = AccessRequest.objects.select_for_update().get(pk=request_id)
    if access_request.status != AccessRequest.Status.PENDING:
        raise InvalidOperation("La solicitud ya fue procesada.")
    access_request.status = AccessRequest.Status.APPROVED
    access_request.save(update_fields=["status"])
    if access_request.user_id:
        profile, _ = Profile.objects.select_for_update().get_or_create(user_id=access_request.user_id)
        roles = [r for r in profile.roles if r != Role.COMEX_PENDING]
        if Role.COMEX not in roles:
            roles.append(Role.COMEX)
        profile.roles = roles
        profile.save(update_fields=["roles"])


@procedure("reject_access_request")
def _reject_access_request(request_id):
    access_request = AccessRequest.objects.select_for_update().get(pk=request_id)
    if access_request.status != AccessRequest.Status.PENDING:
        raise InvalidOperation("La solicitud ya fue procesada.")
    access_request.status = AccessRequest.Status.REJECTED
    access_request.save(update_fields=["status"])
    if access_request.user_id:
        profile, _ = Profile.objects.select_for_update().get_or_create(user_id=access_request.user_id)
        profile.roles = [r for r in profile.roles if r != Role.COMEX_PENDING]
        profile.save(update_fields=["roles"])


def list_users(acting_user) -> list[dict]:
    require_role(acting_user, Role.SUPERADMIN)
    return call("list_users_as_admin")


def update_user_roles(acting_user, user, roles) -> None:
    call("update_user_roles", acting_user_id=acting_user.pk, user_id=getattr(user, "pk", user), roles=list(roles))
    logger.info("Roles de usuario %s actualizados por %s: %s", getattr(user, "pk", user), acting_user.pk, roles)


def request_comex_access(user, company_name: str, contact_person: str, email: str, country: str, message: str = ""):
    if not all((value or "").strip() for value in (company_name, contact_person, email, country)):
        raise InvalidOperation("Empresa, contacto, email y país son obligatorios.")
    access_request = AccessRequest.objects.create(
        user=user if getattr(user, "is_authenticated", False) else None,
        company_name=company_name.strip(),
        contact_person=contact_person.strip(),
        email=email.strip(),
        country=country.strip(),
        message=message or "",
    )
    if access_request.user_id:
        profile, _ = Profile.objects.get_or_create(user_id=access_request.user_id)
        if Role.COMEX_PENDING not in profile.roles and Role.COMEX not in profile.roles:
            profile.roles = [*profile.roles, Role.COMEX_PENDING]
            profile.save(update_fields=["roles"])
    return access_request


def pending_access_requests(acting_user):
    require_role(acting_user, Role.SUPERADMIN)
    return AccessRequest.objects.filter(status=AccessRequest.Status.PENDING).order_by("created_at")


def approve_access_request(acting_user, access_request: AccessRequest) -> None:
    require_role(acting_user, Role.SUPERADMIN)
    call("approve_access_request", request_id=access_request.pk)
    logger.info("Solicitud COMEX %s aprobada por %s", access_request.pk, acting_user.pk)


def reject_access_request(acting_user, access_request: AccessRequest) -> None:
    require_role(acting_user, Role.SUPERADMIN)
    call("reject_access_request", request_id=access_request.pk)
    logger.info("Solicitud COMEX %s rechazada por %s", access_request.pk, acting_user.pk)
