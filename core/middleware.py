from django.conf import settings
from django.http import JsonResponse
from django.shortcuts import redirect


class StaffMiddleware:
    """
    Attaches the ``Staff`` profile of the authenticated user as
    ``request.staff`` (or None).  Views build their engines from
    ``request.staff.organization``, so the tenant is always explicit.

    Must be placed **after** ``AuthenticationMiddleware`` in MIDDLEWARE.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.staff = None
        user = getattr(request, "user", None)
        if user is not None and user.is_authenticated:
            staff = getattr(user, "staff", None)
            if staff is not None and staff.is_active and staff.organization.is_active:
                request.staff = staff
        return self.get_response(request)


class LoginRequiredMiddleware:
    """
    Middleware that redirects unauthenticated users to the login page
    for all views except those whose URL paths are explicitly exempt.

    Exempt paths are defined in settings.LOGIN_EXEMPT_URLS and should
    be a list of URL path prefixes (e.g. ['/login/', '/admin/']).
    JSON clients get a 401 instead of a redirect.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        if not request.user.is_authenticated:
            login_url = getattr(settings, "LOGIN_URL", "/login/")
            exempt_urls = getattr(settings, "LOGIN_EXEMPT_URLS", [login_url])

            path = request.path

            if not any(path.startswith(url) for url in exempt_urls):
                if request.accepts("application/json") and not request.accepts("text/html"):
                    return JsonResponse(
                        {"error": "not_authenticated", "message": "Log in to continue."},
                        status=401,
                    )
                # Preserve the original URL so we can redirect back after login
                return redirect(f"{login_url}?next={path}")

        return self.get_response(request)
