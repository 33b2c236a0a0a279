from decimal import Decimal

from rest_framework import generics, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from drf_spectacular.utils import extend_schema, OpenApiParameter, OpenApiResponse, OpenApiExample

from core.dates import DateRange
from rooms.models import RoomType
from .models import PricingRule, PricingTemplate
from .serializers import PricingRuleSerializer, PricingTemplateSerializer, ApplyTemplateSerializer
from .services import resolver


def _owned_room_type(request, room_type_id):
    return generics.get_object_or_404(
        RoomType.objects.select_related("structure"),
        pk=room_type_id,
        structure__user=request.user,
    )


@extend_schema(
    tags=["rates"],
    summary="List and create pricing rules",
    parameters=[
        OpenApiParameter(name="room_type_id", type=int, location=OpenApiParameter.QUERY, required=False),
    ],
    responses={
        200: PricingRuleSerializer(many=True),
        201: PricingRuleSerializer,
        403: OpenApiResponse(description="Room type pricing is synced from an external PMS"),
    },
    examples=[
        OpenApiExample(
            name="Summer rate",
            value={
                "room_type": 1,
                "start_date": "2025-07-01",
                "end_date": "2025-08-31",
                "price_per_night": "150.00",
                "min_stay": 3,
            },
            request_only=True,
        )
    ],
)
class PricingRuleListCreateView(generics.ListCreateAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = PricingRuleSerializer

    def get_queryset(self):
        qs = PricingRule.objects.filter(room_type__structure__user=self.request.user)
        room_type_id = self.request.query_params.get("room_type_id")
        if room_type_id:
            qs = qs.filter(room_type_id=room_type_id)
        return qs.order_by("start_date", "id")


@extend_schema(
    tags=["rates"],
    summary="Retrieve, update, and delete a pricing rule",
    responses={
        200: PricingRuleSerializer,
        204: None,
        403: OpenApiResponse(description="Room type pricing is synced from an external PMS"),
    },
)
class PricingRuleRetrieveUpdateDestroyView(generics.RetrieveUpdateDestroyAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = PricingRuleSerializer

    def get_queryset(self):
        return PricingRule.objects.filter(
            room_type__structure__user=self.request.user
        ).select_related("room_type__structure")

    def perform_destroy(self, instance):
        resolver.delete_rule(instance)


@extend_schema(
    tags=["rates"],
    summary="Resolve nightly prices and quote a stay",
    parameters=[
        OpenApiParameter(name="room_type_id", type=int, location=OpenApiParameter.QUERY, required=True),
        OpenApiParameter(name="check_in", type=str, location=OpenApiParameter.QUERY, required=True),
        OpenApiParameter(name="check_out", type=str, location=OpenApiParameter.QUERY, required=True,
                         description="Departure date, exclusive"),
    ],
    responses={200: OpenApiResponse(description="Per-night prices, stay constraints and totals")},
)
class ResolvePriceView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        room_type = _owned_room_type(request, request.query_params.get("room_type_id"))
        date_range = DateRange(
            request.query_params.get("check_in"), request.query_params.get("check_out")
        ).check_length()
        nights = resolver.resolve_range(room_type, date_range)
        quote = resolver.quote(room_type, date_range, enforce_stay=False)
        return Response({
            "success": True,
            "data": {
                "room_type_id": room_type.pk,
                "nights": [
                    {
                        "date": n["date"],
                        "price": str(n["price"]),
                        "min_stay": n["min_stay"],
                        "max_stay": n["max_stay"],
                        "rule_id": n["rule"].pk if n["rule"] else None,
                    }
                    for n in nights
                ],
                "quote": {k: str(v) if isinstance(v, Decimal) else v for k, v in quote.items()},
            },
        })


@extend_schema(
    tags=["rates"],
    summary="Overlapping pricing rules with different prices",
    parameters=[
        OpenApiParameter(name="room_type_id", type=int, location=OpenApiParameter.QUERY, required=True),
    ],
    responses={200: OpenApiResponse(description="Advisory list of conflicting rule pairs")},
)
class PricingConflictsView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        room_type = _owned_room_type(request, request.query_params.get("room_type_id"))
        conflicts = resolver.detect_conflicts(room_type)
        return Response({
            "success": True,
            "message": f"{len(conflicts)} conflict(s) found.",
            "data": conflicts,
        })


@extend_schema(
    tags=["rates"],
    summary="List and create pricing templates",
    responses={200: PricingTemplateSerializer(many=True), 201: PricingTemplateSerializer},
)
class PricingTemplateListCreateView(generics.ListCreateAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = PricingTemplateSerializer

    def get_queryset(self):
        qs = PricingTemplate.objects.filter(structure__user=self.request.user)
        structure_id = self.request.query_params.get("structure_id")
        if structure_id:
            qs = qs.filter(structure_id=structure_id)
        return qs


@extend_schema(
    tags=["rates"],
    summary="Retrieve, update, and delete a pricing template",
    responses={200: PricingTemplateSerializer, 204: None},
)
class PricingTemplateRetrieveUpdateDestroyView(generics.RetrieveUpdateDestroyAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = PricingTemplateSerializer

    def get_queryset(self):
        return PricingTemplate.objects.filter(structure__user=self.request.user)


@extend_schema(
    tags=["rates"],
    summary="Apply a pricing template to a room type over a date range",
    request=ApplyTemplateSerializer,
    responses={
        201: PricingRuleSerializer,
        403: OpenApiResponse(description="Room type pricing is synced from an external PMS"),
    },
)
class ApplyTemplateView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, pk):
        template = generics.get_object_or_404(PricingTemplate, pk=pk, structure__user=request.user)
        serializer = ApplyTemplateSerializer(data=request.data, context={"request": request})
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        if data["room_type"].structure_id != template.structure_id:
            return Response(
                {"success": False, "message": "Template and room type belong to different structures."},
                status=status.HTTP_400_BAD_REQUEST,
            )
        rule = resolver.apply_template(template, data["room_type"], data["start_date"], data["end_date"])
        return Response(
            {
                "success": True,
                "message": f"Template {template.name} applied.",
                "data": PricingRuleSerializer(rule).data,
            },
            status=status.HTTP_201_CREATED,
        )
