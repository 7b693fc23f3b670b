"""JSON API views for the assets app."""

import json
import logging
from functools import wraps

from django_ratelimit.decorators import ratelimit

from django.conf import settings
from django.core.cache import cache
from django.core.paginator import Paginator
from django.db.models import Count, ProtectedError, Q
from django.db.models.functions import Coalesce
from django.forms.models import model_to_dict
from django.http import FileResponse, Http404, JsonResponse
from django.shortcuts import get_object_or_404

from .exceptions import (
    ConflictError,
    NotFoundError,
    PersistenceError,
    ServiceError,
    ValidationError,
)
from .forms import (
    AssetCreateForm,
    AssetForm,
    AssetTypeForm,
    EmailSettingsForm,
    EmployeeForm,
    VerificationForm,
)
from .models import (
    Allocation,
    Asset,
    AssetType,
    AuditLog,
    EmailSettings,
    Employee,
    Verification,
)
from .serializers import (
    serialize_allocation,
    serialize_asset,
    serialize_asset_type,
    serialize_audit_log,
    serialize_email_settings,
    serialize_employee,
    serialize_verification,
)
from .services import audit, bulk, spreadsheet
from .services.allocations import allocate, return_allocation
from .services.permissions import require_admin
from .services.resolve import resolve_asset, resolve_employee
from .services.state import transition_asset, validate_transition

logger = logging.getLogger(__name__)

PAGE_SIZE = 50
DASHBOARD_CACHE_KEY = "dashboard_stats"
DASHBOARD_CACHE_TTL = 60  # seconds

# API payload key -> form field name
EMPLOYEE_KEYS = {
    "empId": "emp_id",
    "name": "name",
    "email": "email",
    "branch": "branch",
    "department": "department",
    "designation": "designation",
    "mobile": "mobile",
    "status": "status",
    "dateOfJoining": "date_of_joining",
}
ASSET_TYPE_KEYS = {
    "name": "name",
    "description": "description",
    "schema": "schema",
}
ASSET_KEYS = {
    "assetTypeId": "asset_type",
    "serialNumber": "serial_number",
    "specifications": "specifications",
    "images": "images",
    "status": "status",
}
VERIFICATION_KEYS = {
    "assetId": "asset",
    "status": "status",
    "remarks": "remarks",
    "images": "images",
}
EMAIL_KEYS = {
    "host": "host",
    "port": "port",
    "useTls": "use_tls",
    "useSsl": "use_ssl",
    "username": "username",
    "password": "password",
    "fromEmail": "from_email",
}


# --- Helpers ---


def api_view(methods):
    """Restrict methods, require a session and map service errors.

    ServiceError subclasses become ``{"error": ..., "field": ...}``
    responses with the error's status code. A successful write drops
    the cached dashboard stats.
    """

    def decorator(view):
        @wraps(view)
        def wrapper(request, *args, **kwargs):
            if request.method not in methods:
                return JsonResponse(
                    {"error": f"{request.method} not allowed"}, status=405
                )
            if not request.user.is_authenticated:
                return JsonResponse(
                    {"error": "Not authenticated"}, status=401
                )
            try:
                response = view(request, *args, **kwargs)
            except ServiceError as exc:
                if exc.status_code >= 500:
                    logger.error("%s failed: %s", request.path, exc.message)
                return JsonResponse(exc.as_dict(), status=exc.status_code)
            except Http404:
                return JsonResponse({"error": "Not found"}, status=404)
            if request.method != "GET" and response.status_code < 400:
                cache.delete(DASHBOARD_CACHE_KEY)
            return response

        return wrapper

    return decorator


def _json_body(request):
    try:
        return json.loads(request.body or b"{}")
    except (json.JSONDecodeError, ValueError):
        raise ValidationError("Invalid JSON")


def json_object(request) -> dict:
    data = _json_body(request)
    if not isinstance(data, dict):
        raise ValidationError("Expected a JSON object.")
    return data


def _client_ip(request):
    return request.META.get("REMOTE_ADDR")


def form_data(payload, keys, initial=None):
    """Translate API keys to form field names over ``initial``."""
    data = dict(initial or {})
    for api_key, field in keys.items():
        if api_key in payload:
            data[field] = payload[api_key]
    return data


def form_error(form, keys) -> ValidationError:
    """Return the first form error as a service ValidationError."""
    api_names = {field: api_key for api_key, field in keys.items()}
    for field, errors in form.errors.items():
        if errors:
            name = None if field == "__all__" else api_names.get(field, field)
            return ValidationError(errors[0], field=name)
    return ValidationError("Invalid data.")


def _paginate(request, queryset, serializer):
    paginator = Paginator(queryset, PAGE_SIZE)
    page = paginator.get_page(request.GET.get("page"))
    return JsonResponse(
        {
            "results": [serializer(obj) for obj in page.object_list],
            "count": paginator.count,
            "page": page.number,
            "numPages": paginator.num_pages,
        }
    )


def _import_rows(request):
    """Rows from a multipart ``file`` upload or a JSON body.

    A JSON body may be the list itself or ``{"rows": [...]}``.
    """
    upload = request.FILES.get("file")
    if upload is not None:
        return spreadsheet.read_rows(upload)
    if request.content_type.startswith("multipart/"):
        raise ValidationError("A spreadsheet file is required.", field="file")
    data = _json_body(request)
    if isinstance(data, dict):
        data = data.get("rows")
    return bulk.validate_rows(data)


# --- Dashboard ---


def _compute_dashboard_stats():
    status_counts = Asset.objects.aggregate(
        total=Coalesce(Count("pk"), 0),
        **{
            status.lower(): Coalesce(Count("pk", filter=Q(status=status)), 0)
            for status, _label in Asset.STATUS_CHOICES
        },
    )
    by_type = list(
        AssetType.objects.annotate(asset_count=Count("assets"))
        .order_by("-asset_count", "name")
        .values("name", "asset_count")[:10]
    )
    return {
        "totalAssets": status_counts.pop("total"),
        "byStatus": {
            status: status_counts[status.lower()]
            for status, _label in Asset.STATUS_CHOICES
        },
        "byType": [
            {"name": row["name"], "count": row["asset_count"]}
            for row in by_type
        ],
        "totalEmployees": Employee.objects.count(),
        "activeAllocations": Allocation.objects.filter(
            status=Allocation.ACTIVE
        ).count(),
        "pendingVerifications": Verification.objects.filter(
            status=Verification.PENDING
        ).count(),
    }


@api_view(["GET"])
def dashboard_stats(request):
    stats = cache.get(DASHBOARD_CACHE_KEY)
    if stats is None:
        stats = _compute_dashboard_stats()
        cache.set(DASHBOARD_CACHE_KEY, stats, DASHBOARD_CACHE_TTL)
    return JsonResponse(stats)


# --- Employees ---


@api_view(["GET", "POST"])
def employee_list(request):
    if request.method == "POST":
        require_admin(request.user)
        payload = json_object(request)
        form = EmployeeForm(
            form_data(
                payload, EMPLOYEE_KEYS, {"status": Employee.ACTIVE}
            )
        )
        if not form.is_valid():
            raise form_error(form, EMPLOYEE_KEYS)
        employee = form.save()
        audit.record(
            request.user,
            "Create Employee",
            employee,
            details={"empId": employee.emp_id},
            ip_address=_client_ip(request),
        )
        return JsonResponse(serialize_employee(employee), status=201)

    queryset = Employee.objects.all()
    q = request.GET.get("q", "").strip()
    if q:
        queryset = queryset.filter(
            Q(name__icontains=q)
            | Q(emp_id__icontains=q)
            | Q(email__icontains=q)
        )
    for param in ("branch", "department", "status"):
        value = request.GET.get(param, "").strip()
        if value:
            queryset = queryset.filter(**{param: value})
    return _paginate(request, queryset, serialize_employee)


@api_view(["GET", "PATCH", "PUT"])
def employee_detail(request, pk):
    employee = get_object_or_404(Employee, pk=pk)
    if request.method == "GET":
        return JsonResponse(serialize_employee(employee))

    require_admin(request.user)
    payload = json_object(request)
    form = EmployeeForm(
        form_data(payload, EMPLOYEE_KEYS, model_to_dict(employee)),
        instance=employee,
    )
    if not form.is_valid():
        raise form_error(form, EMPLOYEE_KEYS)
    changed = form.changed_data
    employee = form.save()
    audit.record(
        request.user,
        "Update Employee",
        employee,
        details={"changed": changed},
        ip_address=_client_ip(request),
    )
    return JsonResponse(serialize_employee(employee))


# --- Asset types ---


@api_view(["GET", "POST"])
def asset_type_list(request):
    if request.method == "POST":
        require_admin(request.user)
        form = AssetTypeForm(
            form_data(json_object(request), ASSET_TYPE_KEYS)
        )
        if not form.is_valid():
            raise form_error(form, ASSET_TYPE_KEYS)
        asset_type = form.save()
        audit.record(
            request.user,
            "Create Asset Type",
            asset_type,
            details={"name": asset_type.name},
            ip_address=_client_ip(request),
        )
        return JsonResponse(serialize_asset_type(asset_type), status=201)

    return JsonResponse(
        [serialize_asset_type(t) for t in AssetType.objects.all()],
        safe=False,
    )


@api_view(["GET", "PATCH", "PUT"])
def asset_type_detail(request, pk):
    asset_type = get_object_or_404(AssetType, pk=pk)
    if request.method == "GET":
        return JsonResponse(serialize_asset_type(asset_type))

    require_admin(request.user)
    form = AssetTypeForm(
        form_data(
            json_object(request),
            ASSET_TYPE_KEYS,
            model_to_dict(asset_type),
        ),
        instance=asset_type,
    )
    if not form.is_valid():
        raise form_error(form, ASSET_TYPE_KEYS)
    changed = form.changed_data
    asset_type = form.save()
    audit.record(
        request.user,
        "Update Asset Type",
        asset_type,
        details={"changed": changed},
        ip_address=_client_ip(request),
    )
    return JsonResponse(serialize_asset_type(asset_type))


# --- Assets ---


@api_view(["GET", "POST"])
def asset_list(request):
    if request.method == "POST":
        require_admin(request.user)
        form = AssetCreateForm(form_data(json_object(request), ASSET_KEYS))
        if not form.is_valid():
            raise form_error(form, ASSET_KEYS)
        asset = form.save()
        audit.record(
            request.user,
            "Create Asset",
            asset,
            details={
                "serialNumber": asset.serial_number,
                "assetType": asset.asset_type.name,
            },
            ip_address=_client_ip(request),
        )
        return JsonResponse(serialize_asset(asset), status=201)

    queryset = Asset.objects.select_related("asset_type")
    q = request.GET.get("q", "").strip()
    if q:
        queryset = queryset.filter(serial_number__icontains=q)
    status = request.GET.get("status", "").strip()
    if status:
        queryset = queryset.filter(status=status)
    type_id = request.GET.get("type", "").strip()
    if type_id.isdigit():
        queryset = queryset.filter(asset_type_id=int(type_id))
    return _paginate(request, queryset, serialize_asset)


@api_view(["GET", "PATCH", "PUT", "DELETE"])
def asset_detail(request, pk):
    asset = get_object_or_404(
        Asset.objects.select_related("asset_type"), pk=pk
    )
    if request.method == "GET":
        data = serialize_asset(asset)
        data["allocations"] = [
            serialize_allocation(a)
            for a in asset.allocations.select_related("employee")
        ]
        return JsonResponse(data)

    require_admin(request.user)
    if request.method == "DELETE":
        if asset.allocations.exists():
            raise ConflictError(
                "Assets with allocation history cannot be deleted."
            )
        serial = asset.serial_number
        asset_pk = asset.pk
        try:
            asset.delete()
        except ProtectedError:
            raise ConflictError(
                "Asset is referenced by verifications and cannot be deleted."
            )
        audit.record(
            request.user,
            "Delete Asset",
            entity_type="Asset",
            entity_id=asset_pk,
            details={"serialNumber": serial},
            ip_address=_client_ip(request),
        )
        return JsonResponse({"message": "Asset deleted"})

    payload = json_object(request)
    new_status = payload.get("status")
    if new_status:
        validate_transition(asset, new_status)
    form = AssetForm(
        form_data(payload, ASSET_KEYS, model_to_dict(asset)),
        instance=asset,
    )
    if not form.is_valid():
        raise form_error(form, ASSET_KEYS)
    changed = form.changed_data
    asset = form.save()
    if new_status and new_status != asset.status:
        previous = asset.status
        transition_asset(asset, new_status)
        changed.append("status")
        audit.record(
            request.user,
            "Change Asset Status",
            asset,
            details={"from": previous, "to": new_status},
            ip_address=_client_ip(request),
        )
    audit.record(
        request.user,
        "Update Asset",
        asset,
        details={"changed": changed},
        ip_address=_client_ip(request),
    )
    return JsonResponse(serialize_asset(asset))


# --- Allocations ---


@api_view(["GET", "POST"])
def allocation_list(request):
    if request.method == "POST":
        return _create_allocation(request)

    queryset = Allocation.objects.select_related("asset", "employee")
    status = request.GET.get("status", "").strip()
    if status:
        queryset = queryset.filter(status=status)
    for param, field in (("employee", "employee_id"), ("asset", "asset_id")):
        value = request.GET.get(param, "").strip()
        if value.isdigit():
            queryset = queryset.filter(**{field: int(value)})
    return _paginate(request, queryset, serialize_allocation)


def _create_allocation(request):
    """Allocate by ids or by employee/asset detail bundles.

    Bundles are resolved first, auto-creating unknown employees,
    assets and asset types.
    """
    require_admin(request.user)
    payload = json_object(request)
    employee_ref = payload.get("employeeId") or payload.get("employeeData")
    asset_ref = payload.get("assetId") or payload.get("assetData")
    if not employee_ref:
        raise ValidationError(
            "Either employeeId or employeeData is required.",
            field="employeeId",
        )
    if not asset_ref:
        raise ValidationError(
            "Either assetId or assetData is required.", field="assetId"
        )

    employee = resolve_employee(employee_ref, request.user)
    asset = resolve_asset(asset_ref, request.user)
    allocation = allocate(
        asset.pk,
        employee.pk,
        request.user,
        remarks=str(payload.get("remarks") or ""),
        details=payload.get("details"),
        ip_address=_client_ip(request),
        pdf_url=payload.get("pdfUrl") or "",
    )
    return JsonResponse(serialize_allocation(allocation), status=201)


@api_view(["POST"])
def allocation_return(request, pk):
    require_admin(request.user)
    payload = json_object(request)
    allocation = return_allocation(
        pk,
        str(payload.get("returnReason") or ""),
        payload.get("status"),
        request.user,
        details=payload.get("details"),
        ip_address=_client_ip(request),
    )
    allocation = Allocation.objects.select_related("asset", "employee").get(
        pk=allocation.pk
    )
    return JsonResponse(serialize_allocation(allocation))


# --- Imports ---


def _import_view(importer):
    @api_view(["POST"])
    # All import endpoints draw on one per-user budget
    @ratelimit(
        group="imports",
        key="user",
        rate=settings.IMPORT_RATE_LIMIT,
        method="POST",
        block=True,
    )
    def view(request):
        require_admin(request.user)
        rows = _import_rows(request)
        result = importer(rows, request.user, ip_address=_client_ip(request))
        return JsonResponse(result.as_dict())

    view.__name__ = importer.__name__
    return view


allocation_import = _import_view(bulk.import_allocations)
allocation_bulk_import = _import_view(bulk.bulk_import_allocations)
employee_import = _import_view(bulk.import_employees)
asset_import = _import_view(bulk.import_assets)
asset_type_import = _import_view(bulk.import_asset_types)


@api_view(["GET"])
def import_template(request, kind):
    buffer = spreadsheet.build_template(kind)
    return FileResponse(
        buffer,
        as_attachment=True,
        filename=f"{kind}-import-template.xlsx",
        content_type=(
            "application/vnd.openxmlformats-officedocument"
            ".spreadsheetml.sheet"
        ),
    )


# --- Verifications ---


@api_view(["GET", "POST"])
def verification_list(request):
    if request.method == "POST":
        form = VerificationForm(
            form_data(
                json_object(request),
                VERIFICATION_KEYS,
                {"status": Verification.PENDING},
            )
        )
        if not form.is_valid():
            raise form_error(form, VERIFICATION_KEYS)
        verification = form.save(commit=False)
        verification.verifier = request.user
        verification.save()
        audit.record(
            request.user,
            "Verify Asset",
            verification,
            details={
                "assetId": verification.asset_id,
                "status": verification.status,
            },
            ip_address=_client_ip(request),
        )
        return JsonResponse(serialize_verification(verification), status=201)

    queryset = Verification.objects.select_related("asset", "verifier")
    status = request.GET.get("status", "").strip()
    if status:
        queryset = queryset.filter(status=status)
    return _paginate(request, queryset, serialize_verification)


# --- Audit log ---


@api_view(["GET"])
def audit_log_list(request):
    require_admin(request.user)
    queryset = AuditLog.objects.select_related("user")
    action = request.GET.get("action", "").strip()
    if action:
        queryset = queryset.filter(action=action)
    entity_type = request.GET.get("entityType", "").strip()
    if entity_type:
        queryset = queryset.filter(entity_type=entity_type)
    return _paginate(request, queryset, serialize_audit_log)


# --- Email settings ---


@api_view(["GET", "PUT", "PATCH"])
def email_settings(request):
    require_admin(request.user)
    config = EmailSettings.get_current()
    if request.method == "GET":
        return JsonResponse({"settings": serialize_email_settings(config)})

    initial = model_to_dict(config) if config else {}
    form = EmailSettingsForm(
        form_data(json_object(request), EMAIL_KEYS, initial),
        instance=config,
    )
    if not form.is_valid():
        raise form_error(form, EMAIL_KEYS)
    config = form.save()
    audit.record(
        request.user,
        "Update Email Settings",
        config,
        details={"host": config.host, "port": config.port},
        ip_address=_client_ip(request),
    )
    return JsonResponse({"settings": serialize_email_settings(config)})


@api_view(["POST"])
def email_settings_test(request):
    """Send a test message synchronously so failures reach the caller."""
    from .tasks import send_message

    require_admin(request.user)
    config = EmailSettings.get_current()
    if config is None:
        raise NotFoundError("Email settings are not configured.")
    payload = json_object(request)
    recipient = str(payload.get("to") or request.user.email or "").strip()
    if not recipient:
        raise ValidationError("A recipient address is required.", field="to")
    try:
        send_message(
            config,
            f"{settings.SITE_NAME} test email",
            "This is a test email from the asset management system.",
            None,
            [recipient],
        )
    except OSError as exc:
        logger.warning("Test email to %s failed: %s", recipient, exc)
        raise PersistenceError(f"Could not send test email: {exc}")
    return JsonResponse({"message": f"Test email sent to {recipient}"})
