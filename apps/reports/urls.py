from rest_framework.routers import DefaultRouter

from apps.reports.views import DailyReportViewSet

router = DefaultRouter()
router.register("daily", DailyReportViewSet, basename="daily-report")

urlpatterns = router.urls
