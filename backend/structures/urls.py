from django.urls import path
from .views import StructureListCreateView, StructureRetrieveUpdateDestroyView

urlpatterns = [
    path("", StructureListCreateView.as_view(), name="structure-list-create"),
    path("<int:pk>/", StructureRetrieveUpdateDestroyView.as_view(), name="structure-detail"),
]
