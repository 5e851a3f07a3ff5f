from fastapi.templating import Jinja2Templates

from config import settings
from apps.core.flash import pop_flashes
from apps.core.images import format_file_size
from apps.garage.models import PartCategory

templates = Jinja2Templates(directory=str(settings.TEMPLATES_DIR))


def currency(value) -> str:
    return f"${(value or 0):,.2f}"


def category_label(value) -> str:
    try:
        return PartCategory(value).label
    except ValueError:
        return str(value).capitalize()


templates.env.filters["currency"] = currency
templates.env.filters["filesize"] = format_file_size
templates.env.filters["category_label"] = category_label
templates.env.globals["get_flashed_messages"] = pop_flashes
templates.env.globals["project_name"] = settings.PROJECT_NAME
templates.env.globals["max_upload_size"] = settings.BUCKET_FILE_SIZE_LIMIT
