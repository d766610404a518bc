import csv
import io
from typing import Iterable, Sequence

from fastapi.responses import Response


def csv_response(filename: str, sections: Sequence[tuple[str | None, Sequence[str], Iterable[Sequence]]]) -> Response:
    """
    One CSV download made of titled sections (title line, header, rows),
    separated by blank lines. A ``None`` title writes just header and rows.
    """
    buf = io.StringIO()
    w = csv.writer(buf, lineterminator="\n")
    for i, (title, header, rows) in enumerate(sections):
        if i:
            w.writerow([])
        if title:
            w.writerow([title])
        w.writerow(header)
        w.writerows(rows)
    return Response(
        content=buf.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
