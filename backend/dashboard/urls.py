from django.urls import path
from .views import CalendarView, DashboardWidgetsView

urlpatterns = [
    path("calendar/", CalendarView.as_view(), name="dashboard-calendar"),
    path("widgets", DashboardWidgetsView.as_view(), name="dashboard-widgets"),
]
