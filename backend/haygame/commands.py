import click

from haygame import db, store
from haygame.store import read_snapshot_file, write_snapshot_file


def register_commands(flask_app):

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the database."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            click.echo('Database has been reset!')

    @click.command('export-snapshot')
    @click.argument('path', type=click.Path(dir_okay=False))
    def export_snapshot_command(path):
        """Writes all users and sessions to a JSON snapshot document."""
        with flask_app.app_context():
            snapshot = store.load()
            write_snapshot_file(path, snapshot)
            click.echo(f'Exported {len(snapshot.users)} users and {len(snapshot.sessions)} sessions to {path}')

    @click.command('import-snapshot')
    @click.argument('path', type=click.Path(exists=True, dir_okay=False))
    def import_snapshot_command(path):
        """Replaces all users and sessions with a JSON snapshot document."""
        with flask_app.app_context():
            snapshot = read_snapshot_file(path)
            store.save(snapshot)
            click.echo(f'Imported {len(snapshot.users)} users and {len(snapshot.sessions)} sessions from {path}')

    @click.command('sweep-sessions')
    def sweep_sessions_command():
        """Ends idle play sessions once, outside the background loop."""
        from haygame.services.scheduler import run_liveness_sweep
        ended = run_liveness_sweep(flask_app)
        click.echo(f'Ended {len(ended)} idle sessions')

    @click.command('retry-notifications')
    def retry_notifications_command():
        """Delivers pending withdrawal notifications once."""
        from haygame.services.scheduler import run_notification_retry
        sent = run_notification_retry(flask_app)
        click.echo(f'Delivered {sent} pending notifications')

    for command in (
        db_reset_command,
        export_snapshot_command,
        import_snapshot_command,
        sweep_sessions_command,
        retry_notifications_command,
    ):
        flask_app.cli.add_command(command)
