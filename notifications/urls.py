from django.urls import path
from . import views

app_name = 'notifications'

urlpatterns = [
    path('', views.notification_list, name='notification_list'),
    path('unread-count/', views.unread_count, name='unread_count'),
    path('<uuid:notification_id>/read/', views.mark_read, name='mark_read'),
    path('read-all/', views.mark_all_read, name='mark_all_read'),
    path('clear/', views.clear_notifications, name='clear'),
    path('group/<uuid:group_id>/activity/', views.group_activity, name='group_activity'),
]
