# guests/views.py
from rest_framework import viewsets, filters
from rest_framework.permissions import IsAuthenticated
from .models import GuestProfile
from .serializers import GuestProfileSerializer


class GuestProfileViewSet(viewsets.ModelViewSet):
    """
    CRUD API for guest profiles
    """
    queryset = GuestProfile.objects.all().order_by("-created_at")
    serializer_class = GuestProfileSerializer
    permission_classes = [IsAuthenticated]
    filter_backends = [filters.SearchFilter]
    search_fields = ["email", "first_name", "last_name"]
