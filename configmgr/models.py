# configmgr/models.py
#
# Purpose:
# - Runtime key/value overrides editable from the Django admin.
#
# Known keys:
#   - BUSINESS_OPEN  (e.g. '10:00')  first bookable start of the day
#   - BUSINESS_CLOSE (e.g. '22:00')  venue closing time, latest booking end
#
from django.db import models


class SystemSetting(models.Model):
    """
    Simple key/value settings store.
    Rows win over the CATCAFE_BOOKING defaults in settings.py.
    """
    key = models.CharField(max_length=100, unique=True)
    value = models.CharField(max_length=200)

    def __str__(self):
        return f"{self.key}={self.value}"

    @classmethod
    def get_value(cls, key: str, default=None):
        row = cls.objects.filter(key=key).first()
        return row.value if row else default
