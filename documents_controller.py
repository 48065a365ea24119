# documents_controller.py
from __future__ import annotations

import mimetypes
import os
from email import policy
from email.parser import BytesParser
from typing import Optional

from errors import BackendError, FormValidationError, NotFoundError, StorageError
from web_controller import BaseController
from web_views import form_view, success_and_close


def parse_multipart(environ, body: bytes) -> tuple[dict[str, str], Optional[tuple[str, bytes]]]:
    """
    multipart/form-data -> (text fields, (filename, content) of the "file" part).
    An empty file input comes back as None.
    """
    ctype = environ.get("CONTENT_TYPE", "")
    if not ctype.startswith("multipart/form-data"):
        raise ValueError("Expected multipart/form-data")
    msg = BytesParser(policy=policy.HTTP).parsebytes(
        f"Content-Type: {ctype}\r\n\r\n".encode("latin-1") + body
    )
    fields: dict[str, str] = {}
    upload: Optional[tuple[str, bytes]] = None
    for part in msg.iter_parts():
        name = part.get_param("name", header="content-disposition")
        if not name:
            continue
        filename = part.get_filename()
        content = part.get_payload(decode=True) or b""
        if filename is not None:
            if name == "file" and filename:
                upload = (os.path.basename(filename), content)
        else:
            fields[name] = content.decode(part.get_content_charset() or "utf-8", errors="replace")
    return fields, upload


class DocumentsController(BaseController):
    """
    GET  /document/upload            -> upload popup
    POST /document/upload            -> store blob + metadata row
    GET  /document/download?id=...   -> redirect to a short-lived signed URL
    GET  /files?path=&expires=&signature=  -> blob bytes if the signature holds
    """

    def _form(self, environ, start_response, *, values=None, errors=None,
              status: str = "200 OK", toast: Optional[str] = None) -> list[bytes]:
        body = form_view("document", title="Upload document", action="/document/upload",
                         submit_text="Upload", values=values, errors=errors)
        return self._page(environ, start_response, "Upload document", body, status=status,
                          toast=toast, nav=False)

    def upload(self, environ, start_response) -> list[bytes]:
        if environ.get("REQUEST_METHOD", "GET").upper() != "POST":
            return self._form(environ, start_response)
        try:
            fields, upload = parse_multipart(environ, self._read_body(environ))
        except ValueError as e:
            return self._form(environ, start_response, errors={"form": str(e)},
                              status="400 Bad Request")
        filename, data = upload if upload else ("", None)
        try:
            doc = self.service.upload_document(fields, filename, data)
        except FormValidationError as e:
            return self._form(environ, start_response, values=fields, errors=e.errors,
                              status="400 Bad Request")
        except (BackendError, StorageError) as e:
            return self._form(environ, start_response, values=fields,
                              status="502 Bad Gateway", toast=str(e))
        body = success_and_close("Document uploaded", event_type="document_added",
                                 payload={"id": doc.id})
        return self._page(environ, start_response, "Done", body, nav=False)

    def download(self, environ, start_response) -> list[bytes]:
        doc_id = self._id(self._first(self._query(environ), "id"))
        if doc_id is None:
            return self._bad_id(start_response)
        try:
            url = self.service.document_url(doc_id)
        except NotFoundError as e:
            return self._not_found(start_response, str(e))
        return self._redirect(start_response, url)

    def files(self, environ, start_response) -> list[bytes]:
        storage = self.service.storage
        q = self._query(environ)
        path = self._first(q, "path")
        if storage is None or not storage.verify_signed_url(
            path, self._first(q, "expires"), self._first(q, "signature")
        ):
            start_response("403 Forbidden", [("Content-Type", "text/plain; charset=utf-8")])
            return [b"Link expired or invalid"]
        try:
            data = storage.download(path)
        except StorageError as e:
            return self._not_found(start_response, str(e))

        name = path
        for d in self.service.documents():
            if d.file_path == path:
                _, ext = os.path.splitext(path)
                name = d.name if d.name.lower().endswith(ext.lower()) else f"{d.name}{ext}"
                break
        ctype = mimetypes.guess_type(path)[0] or "application/octet-stream"
        safe = name.encode("ascii", "replace").decode("ascii").replace('"', "'")
        start_response("200 OK", [
            ("Content-Type", ctype),
            ("Content-Disposition", f'attachment; filename="{safe}"'),
            ("Content-Length", str(len(data))),
        ])
        return [data]
