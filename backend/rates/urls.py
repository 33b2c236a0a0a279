from django.urls import path
from .views import (
    PricingRuleListCreateView,
    PricingRuleRetrieveUpdateDestroyView,
    ResolvePriceView,
    PricingConflictsView,
    PricingTemplateListCreateView,
    PricingTemplateRetrieveUpdateDestroyView,
    ApplyTemplateView,
)

urlpatterns = [
    path("rules/", PricingRuleListCreateView.as_view(), name="pricing-rule-list-create"),
    path("rules/<int:pk>/", PricingRuleRetrieveUpdateDestroyView.as_view(), name="pricing-rule-detail"),
    path("resolve/", ResolvePriceView.as_view(), name="pricing-resolve"),
    path("conflicts/", PricingConflictsView.as_view(), name="pricing-conflicts"),
    path("templates/", PricingTemplateListCreateView.as_view(), name="pricing-template-list-create"),
    path(
        "templates/<int:pk>/",
        PricingTemplateRetrieveUpdateDestroyView.as_view(),
        name="pricing-template-detail",
    ),
    path("templates/<int:pk>/apply/", ApplyTemplateView.as_view(), name="pricing-template-apply"),
]
