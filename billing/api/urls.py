"""API URL routing for the billing engine."""
from rest_framework.routers import DefaultRouter

from .views import InvoiceViewSet, MatterViewSet, TimeEntryViewSet

router = DefaultRouter()
router.register(r'time-entries', TimeEntryViewSet, basename='api-time-entries')
router.register(r'matters', MatterViewSet, basename='api-matters')
router.register(r'invoices', InvoiceViewSet, basename='api-invoices')

urlpatterns = router.urls
