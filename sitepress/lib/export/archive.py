import io
import zipfile

from sitepress.lib.export.types import ExportResult


def zip_export(result: ExportResult, root: str | None = None) -> bytes:
    """Pack the exported files into a DEFLATE zip archive, optionally under ``root/``."""
    buffer = io.BytesIO()
    prefix = f"{root.strip('/')}/" if root else ""
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for exported in result.files:
            if exported.is_directory:
                archive.writestr(f"{prefix}{exported.path.rstrip('/')}/", "")
            else:
                archive.writestr(f"{prefix}{exported.path}", exported.content)
    return buffer.getvalue()
