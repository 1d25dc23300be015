from django.urls import path

from . import views

app_name = 'circles'

urlpatterns = [
    path('', views.my_groups, name='my_groups'),
    path('create/', views.create_group, name='create_group'),
    path('lookup/', views.lookup_invite, name='lookup_invite'),
    path('join/', views.join_group, name='join_group'),

    path('<uuid:group_id>/', views.group_detail, name='group_detail'),
    path('<uuid:group_id>/settings/', views.update_settings, name='update_settings'),
    path('<uuid:group_id>/archive/', views.archive_group, name='archive_group'),
    path('<uuid:group_id>/restore/', views.restore_group, name='restore_group'),
    path('<uuid:group_id>/delete/', views.delete_group, name='delete_group'),

    path('<uuid:group_id>/queue/', views.queue, name='queue'),
    path('members/<uuid:member_id>/move/', views.move_member, name='move_member'),
    path('members/<uuid:member_id>/restore/', views.restore_member, name='restore_member'),

    path('<uuid:group_id>/cycles/start/', views.start_cycle, name='start_cycle'),
    path('<uuid:group_id>/cycles/current/', views.current_cycle, name='current_cycle'),
    path('<uuid:group_id>/cycles/history/', views.cycle_history, name='cycle_history'),
    path('<uuid:group_id>/remind-all/', views.remind_all, name='remind_all'),
    path('cycles/<uuid:cycle_id>/close/', views.close_cycle, name='close_cycle'),

    path('payments/<uuid:log_id>/mark-sent/', views.mark_sent, name='mark_sent'),
    path('payments/<uuid:log_id>/verify/', views.verify_payment, name='verify_payment'),
    path('payments/<uuid:log_id>/reject/', views.reject_payment, name='reject_payment'),
    path('payments/<uuid:log_id>/remind/', views.remind_member, name='remind_member'),
]
