# booking/views.py
#
# Purpose:
# - REST API for rooms, bookings, balances and the cancellation policy.
# - Start/end time options for the booking form.
# - Booking lifecycle actions (cancel, receipt upload, confirm, reschedule)
#   delegate to BookingManager; views only parse input and map errors.
# - Permissions:
#   * Every endpoint requires login (REST_FRAMEWORK default).
#   * Members see their own bookings and balance; admins (is_staff) see all.
#   * Confirm payment, admin cancel and package assignment are admin-only.
#
# Error mapping (booking/exceptions.py -> HTTP):
#   validation / invalid transition -> 400
#   not found                       -> 404
#   conflict                        -> 409 {"conflict": true}
#   insufficient balance / fee      -> 400 {"insufficient_tokens": true}
#   transient                       -> 503
#
import logging

from django.shortcuts import get_object_or_404
from django.utils.dateparse import parse_date

from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response

from .exceptions import (
    BookingError,
    BookingNotFound,
    ConflictError,
    InsufficientBalanceError,
    TransientError,
)
from .models import Booking, Room, UserBalance
from .serializers import (
    AssignPackageSerializer,
    BalanceTransactionSerializer,
    BookingCreateSerializer,
    BookingSerializer,
    RescheduleSerializer,
    RoomSerializer,
    UserBalanceSerializer,
)
from .services.availability_engine import AvailabilityEngine
from .services.booking_manager import BookingManager
from .services.cancellation_policy import CancellationPolicyEngine
from .services.package_service import PackageService

logger = logging.getLogger(__name__)


def error_response(exc: BookingError) -> Response:
    """Translate a booking service error into the API's JSON error shape."""
    body = {"detail": exc.message or str(exc), "code": exc.code}
    if isinstance(exc, ConflictError):
        body["conflict"] = True
        return Response(body, status=status.HTTP_409_CONFLICT)
    if isinstance(exc, InsufficientBalanceError):
        body.update(
            insufficient_tokens=True,
            field=exc.field,
            required=exc.required,
            available=exc.available,
        )
        return Response(body, status=status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, BookingNotFound):
        return Response(body, status=status.HTTP_404_NOT_FOUND)
    if isinstance(exc, TransientError):
        return Response(body, status=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(body, status=status.HTTP_400_BAD_REQUEST)


def _is_admin(request) -> bool:
    return bool(request.user and request.user.is_staff)


# -------------------- ViewSets --------------------
class RoomViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Room catalogue. Hidden rooms are listed for admins only.
    """
    serializer_class = RoomSerializer

    def get_queryset(self):
        qs = Room.objects.prefetch_related("images").order_by("id")
        if _is_admin(self.request):
            return qs
        return qs.filter(hidden=False)


class BookingViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """
    Endpoints:
    - GET    /api/bookings/                         own bookings (all for admins)
    - POST   /api/bookings/                         create
    - GET    /api/bookings/start-options/           ?room=&date=[&exclude=]
    - GET    /api/bookings/end-options/             ?room=&date=&start=[&exclude=]
    - POST   /api/bookings/{id}/cancel/             member cancellation (policy fee)
    - POST   /api/bookings/{id}/upload-receipt/     cash receipt (multipart 'file')
    - POST   /api/bookings/{id}/confirm/            admin payment confirmation
    - POST   /api/bookings/{id}/admin-cancel/       admin cancellation (no fee)
    - POST   /api/bookings/{id}/reschedule/         move to a new interval
    - GET    /api/bookings/cancellation-stats/      this month's cancellation counters
    - GET    /api/bookings/cancellation-policy/     ?lang=en|zh[&booking=]
    """
    serializer_class = BookingSerializer
    lookup_value_regex = r"\d+"
    parser_classes = [JSONParser, FormParser, MultiPartParser]
    manager = BookingManager()
    availability = AvailabilityEngine()
    policy = CancellationPolicyEngine()

    def get_queryset(self):
        qs = Booking.objects.select_related("room").order_by("-start_time")
        if _is_admin(self.request):
            status_filter = self.request.query_params.get("status")
            return qs.filter(status=status_filter) if status_filter else qs
        return qs.filter(user=self.request.user)

    def _reply(self, record, http_status=status.HTTP_200_OK, **extra):
        booking = Booking.objects.select_related("room").get(pk=record.id)
        data = dict(BookingSerializer(booking).data)
        data.update(extra)
        return Response(data, status=http_status)

    def create(self, request, *args, **kwargs):
        """
        Create a booking for the logged-in member.
        - Token bookings are paid from the balance immediately.
        - Cash bookings stay pending until a receipt is uploaded and confirmed.
        """
        serializer = BookingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        notes = {k: data[k] for k in ("purpose", "special_requests") if data.get(k)}
        try:
            record = self.manager.create_booking(
                user_id=request.user.id,
                room_id=data["room"],
                start_time=data["start_time"],
                end_time=data["end_time"],
                payment_method=data["payment_method"],
                package=data.get("package") or None,
                rental_type=data["rental_type"],
                guests=data["guests"],
                with_equipment=data["with_equipment"],
                notes=notes,
            )
        except BookingError as e:
            return error_response(e)
        return self._reply(record, status.HTTP_201_CREATED)

    # ---------------- time options ----------------
    def _option_params(self, request):
        room_id = (request.query_params.get("room") or "").strip()
        date_raw = (request.query_params.get("date") or "").strip()
        if not room_id or not date_raw:
            return None, Response({"detail": "Missing 'room' or 'date'."}, status=status.HTTP_400_BAD_REQUEST)

        # Normalize to 'YYYY-MM-DD'
        date_str = date_raw.split("T", 1)[0].split(" ", 1)[0]
        try:
            day = parse_date(date_str)
        except ValueError:
            day = None
        if day is None:
            return None, Response(
                {"detail": "Invalid date format. Use YYYY-MM-DD."},
                status=status.HTTP_400_BAD_REQUEST,
            )

        exclude_raw = (request.query_params.get("exclude") or "").strip()
        try:
            room_pk = int(room_id)
            exclude = int(exclude_raw) if exclude_raw else None
        except ValueError:
            return None, Response(
                {"detail": "'room' and 'exclude' must be numeric ids."},
                status=status.HTTP_400_BAD_REQUEST,
            )
        room = get_object_or_404(Room, pk=room_pk)
        return (room, day, exclude), None

    @action(detail=False, methods=["get"], url_path="start-options")
    def start_options(self, request):
        params, error = self._option_params(request)
        if error:
            return error
        room, day, exclude = params
        options = self.availability.generate_start_options(day, room.id, exclude_booking_id=exclude)
        return Response({"date": day.isoformat(), "room": room.id, "options": options})

    @action(detail=False, methods=["get"], url_path="end-options")
    def end_options(self, request):
        params, error = self._option_params(request)
        if error:
            return error
        room, day, exclude = params
        start = (request.query_params.get("start") or "").strip()
        if not start:
            return Response({"detail": "Missing 'start'."}, status=status.HTTP_400_BAD_REQUEST)
        try:
            options = self.availability.generate_end_options(day, room.id, start, exclude_booking_id=exclude)
        except ValueError:
            return Response({"detail": "Invalid start time. Use HH:MM."}, status=status.HTTP_400_BAD_REQUEST)
        return Response({"date": day.isoformat(), "room": room.id, "start": start, "options": options})

    # ---------------- lifecycle ----------------
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        """
        Member cancellation. Refunds the original charge and applies the
        monthly free-cancellation policy.
        """
        reason = (request.data.get("reason") or "").strip()
        try:
            result = self.manager.cancel_booking(int(pk), request.user.id, reason=reason)
        except BookingError as e:
            return error_response(e)
        return self._reply(
            result.booking,
            token_deducted=result.token_deducted,
            refunded=result.refunded,
            fee=result.fee,
            hours_before_booking=round(result.hours_before_booking, 2),
            policy_reason=result.reason,
        )

    @action(detail=True, methods=["post"], url_path="upload-receipt")
    def upload_receipt(self, request, pk=None):
        try:
            record = self.manager.upload_receipt(int(pk), request.user.id, request.FILES.get("file"))
        except BookingError as e:
            return error_response(e)
        return self._reply(record)

    @action(detail=True, methods=["post"], permission_classes=[IsAdminUser])
    def confirm(self, request, pk=None):
        notes = (request.data.get("admin_notes") or "").strip()
        try:
            record = self.manager.confirm_payment(int(pk), request.user.id, admin_notes=notes)
        except BookingError as e:
            return error_response(e)
        return self._reply(record)

    @action(detail=True, methods=["post"], url_path="admin-cancel", permission_classes=[IsAdminUser])
    def admin_cancel(self, request, pk=None):
        reason = (request.data.get("reason") or "").strip() or "Cancelled by admin"
        try:
            result = self.manager.admin_cancel_booking(int(pk), request.user.id, reason=reason)
        except BookingError as e:
            return error_response(e)
        return self._reply(result.booking, refunded=result.refunded)

    @action(detail=True, methods=["post"])
    def reschedule(self, request, pk=None):
        serializer = RescheduleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            record = self.manager.reschedule_booking(
                int(pk),
                request.user.id,
                serializer.validated_data["start_time"],
                serializer.validated_data["end_time"],
                is_admin=_is_admin(request),
            )
        except BookingError as e:
            return error_response(e)
        return self._reply(record, status.HTTP_201_CREATED, rescheduled_from=int(pk))

    # ---------------- policy ----------------
    @action(detail=False, methods=["get"], url_path="cancellation-stats")
    def cancellation_stats(self, request):
        try:
            stats = self.policy.get_user_monthly_cancellations(request.user.id)
        except BookingError as e:
            return error_response(e)
        return Response(stats.as_dict())

    @action(detail=False, methods=["get"], url_path="cancellation-policy")
    def cancellation_policy(self, request):
        """
        Policy rules in the requested language. With ?booking=<id>, also the
        decision that cancelling that booking now would get.
        """
        lang = request.query_params.get("lang") or "en"
        data = {"summary": self.policy.policy_summary(lang)}

        booking_id = request.query_params.get("booking")
        if booking_id:
            booking = get_object_or_404(self.get_queryset(), pk=booking_id)
            try:
                hours = self.policy.hours_before_booking(booking.start_time)
                decision = self.policy.should_deduct_token(booking.user_id, hours)
            except BookingError as e:
                return error_response(e)
            data["info"] = self.policy.policy_info(hours)
            data["decision"] = decision.as_dict()
        return Response(data)


class BalanceViewSet(viewsets.ViewSet):
    """
    - GET  /api/balance/                  own balance and recent transactions
    - POST /api/balance/assign-package/   admin: {"user", "package"} or {"user", "tokens"}
    """
    packages = PackageService()

    def list(self, request):
        balance, _ = UserBalance.objects.get_or_create(user=request.user)
        data = dict(UserBalanceSerializer(balance).data)
        recent = request.user.balance_transactions.all()[:20]
        data["transactions"] = BalanceTransactionSerializer(recent, many=True).data
        return Response(data)

    @action(detail=False, methods=["post"], url_path="assign-package", permission_classes=[IsAdminUser])
    def assign_package(self, request):
        serializer = AssignPackageSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            if data.get("package"):
                self.packages.assign_package(data["user"], data["package"], admin_id=request.user.id)
            else:
                self.packages.top_up_tokens(data["user"], data["tokens"], admin_id=request.user.id)
        except BookingError as e:
            return error_response(e)
        balance = UserBalance.objects.get(user_id=data["user"])
        return Response(UserBalanceSerializer(balance).data, status=status.HTTP_200_OK)
