"""Create the housekeeper tables and seed the default scheduled tasks."""

from src.housekeeper.config import load_config
from src.housekeeper.repositories.scheduled_task_repository import ScheduledTaskRepository
from src.housekeeper.scheduler.bootstrap import TaskBootstrapper


def main() -> None:
    config = load_config()
    created = TaskBootstrapper(ScheduledTaskRepository(config.session_factory)).ensure_defaults()
    print(f"Database initialized, {len(created)} default task(s) created.")


if __name__ == "__main__":
    main()
