from django.core.management.base import BaseCommand
from django.db.models import Count, Q

from circles.models import Group, PaymentLog
from notifications.utils import get_user_display_name


class Command(BaseCommand):
    help = 'List groups with their active cycle and payout queue'

    def add_arguments(self, parser):
        parser.add_argument(
            '--archived',
            action='store_true',
            help='Include archived groups',
        )

    def handle(self, *args, **options):
        self.stdout.write(self.style.SUCCESS('\n' + '=' * 80))
        self.stdout.write(self.style.SUCCESS('  GROUPS'))
        self.stdout.write(self.style.SUCCESS('=' * 80 + '\n'))

        groups = Group.objects.select_related('president')
        if not options['archived']:
            groups = groups.filter(archived_at__isnull=True)
        groups = groups.annotate(
            active_count=Count('members', filter=Q(members__status='active')),
            locked_count=Count('members', filter=Q(members__status='locked')),
        ).order_by('-created_at')

        if not groups.exists():
            self.stdout.write(self.style.WARNING('No groups found.'))
            return

        for group in groups:
            self.stdout.write('\n' + '-' * 80)
            self.stdout.write(self.style.HTTP_SUCCESS(f'NAME: {group.name}'))
            self.stdout.write(f'ID: {group.id}')
            if group.is_archived:
                self.stdout.write(self.style.WARNING(f'ARCHIVED: {group.archived_at:%Y-%m-%d %H:%M}'))
            self.stdout.write(f'PRESIDENT: {get_user_display_name(group.president)}')
            self.stdout.write(f'INVITE CODE: {group.invite_code}')
            self.stdout.write(f'CONTRIBUTION: {group.contribution_amount} ({group.get_frequency_display()})')
            self.stdout.write(f'MEMBERS: {group.active_count} active, {group.locked_count} locked')

            cycle = group.get_active_cycle()
            if cycle is None:
                self.stdout.write('CYCLE: none active')
            else:
                paid = cycle.payment_logs.filter(status='verified').count()
                outstanding = cycle.payment_logs.filter(status__in=PaymentLog.OUTSTANDING_STATUSES).count()
                self.stdout.write(self.style.SUCCESS(
                    f'CYCLE: {cycle.start_date} -> {cycle.due_date} '
                    f'({paid} verified, {outstanding} outstanding)'
                ))

            queue = group.get_active_members().select_related('user')
            if queue.exists():
                self.stdout.write('\nQUEUE:')
                for member in queue:
                    self.stdout.write(
                        f'  #{member.queue_position} {get_user_display_name(member.user)} '
                        f'({member.get_role_display()}, missed: {member.missed_payment_count})'
                    )

        self.stdout.write('\n' + '=' * 80)
        self.stdout.write(self.style.SUCCESS(f'Total groups: {groups.count()}\n'))
