from django.urls import path
from rest_framework.routers import DefaultRouter

from apps.inventory.views import StockLevelView, StockMovementViewSet

router = DefaultRouter()
router.register("movements", StockMovementViewSet, basename="stock-movement")

urlpatterns = [
    path("stocks/", StockLevelView.as_view(), name="stock-level"),
]
urlpatterns += router.urls
