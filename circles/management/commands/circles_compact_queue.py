from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError

from circles.models import Group
from circles.services import QueueService


class Command(BaseCommand):
    help = 'Renumber active queue positions to 1..N, keeping the current order'

    def add_arguments(self, parser):
        parser.add_argument('--group-id', type=str, help='Group to repair')
        parser.add_argument('--all', action='store_true', help='Repair every group')

    def handle(self, *args, **options):
        if options['all']:
            groups = Group.objects.all()
        elif options['group_id']:
            try:
                groups = list(Group.objects.filter(pk=options['group_id']))
            except ValidationError:
                groups = []
            if not groups:
                raise CommandError(f"Group {options['group_id']} not found")
        else:
            raise CommandError('Pass --group-id <uuid> or --all')

        total = 0
        for group in groups:
            changed = QueueService.compact(group)
            total += changed
            if changed:
                self.stdout.write(self.style.WARNING(f'{group.name}: {changed} position(s) renumbered'))
            else:
                self.stdout.write(f'{group.name}: queue already dense')

        self.stdout.write(self.style.SUCCESS(f'Done. {total} position(s) renumbered.'))
