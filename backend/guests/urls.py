from rest_framework.routers import DefaultRouter
from .views import GuestProfileViewSet

router = DefaultRouter()
router.register(r'guests', GuestProfileViewSet, basename='guest')

urlpatterns = [
    *router.urls,
]
