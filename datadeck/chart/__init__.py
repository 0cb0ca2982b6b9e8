from .figures import (
    COLORWAY,
    widget_figure,
    export_html,
    export_page_html,
)

__all__ = ["COLORWAY", "widget_figure", "export_html", "export_page_html"]
