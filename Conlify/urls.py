"""Conlify URL Configuration"""

from django.contrib import admin
from django.urls import path, include


urlpatterns = [
    path('admin/', admin.site.urls),

    # ========== SAVINGS CIRCLES ==========
    path('circles/', include('circles.urls')),

    # ========== NOTIFICATIONS & ACTIVITY ==========
    path('notifications/', include('notifications.urls')),
]
