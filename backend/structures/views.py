from rest_framework import generics
from rest_framework.permissions import IsAuthenticated
from drf_spectacular.utils import extend_schema, OpenApiResponse
from .models import Structure
from .serializers import StructureSerializer


@extend_schema(
    tags=["structure"],
    summary="List and create structures",
    responses={
        200: StructureSerializer(many=True),
        201: StructureSerializer,
        403: OpenApiResponse(description="Forbidden"),
    },
)
class StructureListCreateView(generics.ListCreateAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = StructureSerializer

    def get_queryset(self):
        # Show only structures owned by the logged-in user
        return Structure.objects.filter(user=self.request.user)

    def perform_create(self, serializer):
        # Let the serializer.create() pick up request.user from context
        serializer.save()


@extend_schema(
    tags=["structure"],
    summary="Retrieve, update, and delete a structure",
    responses={
        200: StructureSerializer,
        204: None,
        403: OpenApiResponse(description="Forbidden"),
    },
)
class StructureRetrieveUpdateDestroyView(generics.RetrieveUpdateDestroyAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = StructureSerializer

    def get_queryset(self):
        # Restrict access to structures owned by the logged-in user
        return Structure.objects.filter(user=self.request.user)
