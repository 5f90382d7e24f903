from rest_framework import permissions, status
from rest_framework.response import Response


class IsEmployer(permissions.BasePermission):
    message = "Only employers can perform this action"

    def has_permission(self, request, view):
        if not request.user.is_authenticated:
            return False
        return request.user.is_employer or request.user.is_admin


class IsFreelancer(permissions.BasePermission):
    message = "Only freelancers can perform this action"

    def has_permission(self, request, view):
        if not request.user.is_authenticated:
            return False
        return request.user.is_freelancer


def success_response(data=None, status_code=status.HTTP_200_OK, **extra):
    """Wrap a payload in the ``{"success": true, "data": ...}`` envelope."""
    body = {'success': True}
    if isinstance(data, list):
        body['count'] = len(data)
    body['data'] = data if data is not None else {}
    body.update(extra)
    return Response(body, status=status_code)
