# web_views.py
from __future__ import annotations

import json
from decimal import Decimal
from html import escape
from typing import Any, Iterable, Optional, Sequence

from aggregation import Balance, DashboardStats
from entities import (
    ENTITY_STATUSES,
    PAYMENT_STATUSES,
    PAYMENT_TYPES,
    TASK_STATUSES,
    VENDOR_CATEGORIES,
    Document,
    Payment,
    Task,
)
from listing import Page
from services import ClientDetail, ContractDetail, ListResult, PartyDetail, Row

NAV: tuple[tuple[str, str], ...] = (
    ("/", "Dashboard"),
    ("/clients", "Clients"),
    ("/vendors", "Vendors"),
    ("/labors", "Labor"),
    ("/contracts", "Contracts"),
    ("/tasks", "Tasks"),
    ("/documents", "Documents"),
    ("/exports", "Exports"),
)

TITLES: dict[str, str] = {
    "client": "Client",
    "vendor": "Vendor",
    "labor": "Labor",
    "contract": "Contract",
    "task": "Task",
    "document": "Document",
    "payment": "Payment",
}
PLURAL: dict[str, str] = {
    "client": "clients",
    "vendor": "vendors",
    "labor": "labors",
    "contract": "contracts",
    "task": "tasks",
    "document": "documents",
}


def layout(title: str, body_html: str, *, nav: bool = True, toast: Optional[str] = None,
           user: Optional[str] = None) -> bytes:
    nav_html = ""
    if nav:
        links = "".join(f"<a href='{href}'>{escape(label)}</a>" for href, label in NAV)
        who = (f"<span class='right muted'>{escape(user)} "
               f"<a href='/logout'>Sign out</a></span>") if user else ""
        nav_html = f"<nav class='flex'>{links}{who}</nav>"
    toast_html = f"<div class='toast'>{escape(toast)}</div>" if toast else ""
    html = f"""<!doctype html>
<html lang="en">
<head>
<meta charset="utf-8" />
<title>{escape(title)}</title>
<meta name="viewport" content="width=device-width, initial-scale=1" />
<style>
  :root {{
    --danger:#b00020;
    --ok:#1b7f3b;
    --muted:#666;
    --b:#ddd;
  }}
  body {{ font-family: ui-sans-serif, system-ui, -apple-system, Segoe UI, Roboto, Arial; margin: 24px; }}
  nav {{ border-bottom:1px solid var(--b); padding-bottom:10px; margin-bottom:18px; }}
  nav a {{ margin-right:12px; }}
  table {{ border-collapse: collapse; width: 100%; }}
  th, td {{ border: 1px solid var(--b); padding: 8px; vertical-align: top; }}
  th {{ background: #fafafa; text-align: left; }}
  td.num {{ text-align:right; font-variant-numeric: tabular-nums; }}
  a.button {{ display:inline-block; padding:6px 10px; border:1px solid #555; border-radius:6px; text-decoration:none; }}
  a.button.danger {{ border-color: var(--danger); color: var(--danger); }}
  .muted {{ color:var(--muted); font-size: 90%; }}
  .grid {{ display:grid; grid-template-columns: repeat(2,minmax(220px,1fr)); gap:10px; }}
  .grid .full {{ grid-column: 1 / -1; }}
  label > span.req {{ color:var(--danger); margin-left:4px; }}
  input, select, textarea {{ width:100%; padding:6px 8px; box-sizing:border-box; }}
  button {{ padding:6px 12px; }}
  .btns > a {{ margin-right: 6px; }}
  .filters {{
    display:grid; grid-template-columns: repeat(4,minmax(180px,1fr)); gap:10px;
    border:1px solid var(--b); padding:12px; border-radius:8px; margin-bottom:14px;
  }}
  .filters .row {{ display:flex; flex-direction:column; gap:6px; }}
  .filters .row span {{ font-size:12px; color:#333; }}
  .filters .wide {{ grid-column: 1 / -1; }}
  .error {{ color:var(--danger); margin:8px 0; }}
  .field-error {{ color:var(--danger); font-size:12px; }}
  .flex {{ display:flex; gap:8px; align-items:center; flex-wrap:wrap; }}
  .pill {{ display:inline-block; border:1px solid var(--b); padding:4px 8px; border-radius:999px; font-size:12px; }}
  .pill.pending {{ border-color:var(--danger); color:var(--danger); }}
  .pill.completed {{ border-color:var(--ok); color:var(--ok); }}
  .right {{ margin-left:auto; }}
  .cards {{ display:grid; grid-template-columns: repeat(4,minmax(160px,1fr)); gap:10px; margin-bottom:18px; }}
  .card {{ border:1px solid var(--b); border-radius:8px; padding:12px; }}
  .card b {{ display:block; font-size:20px; margin-top:4px; }}
  .toast {{
    position:fixed; right:24px; bottom:24px; max-width:420px; padding:12px 16px;
    border-radius:8px; background:var(--danger); color:#fff;
  }}
  .warnbox {{
    border:1px solid var(--danger); border-radius:8px; padding:12px; margin:12px 0; background:#fff5f6;
  }}
</style>
</head>
<body>
{nav_html}
{body_html}
{toast_html}
{POPUP_SCRIPT}
</body>
</html>"""
    return html.encode("utf-8")


# links with data-popup="1" open in a popup; popups report back via postMessage
POPUP_SCRIPT = """
<script>
  (function() {
    var links = document.querySelectorAll('a[data-popup="1"]');
    for (var i=0;i<links.length;i++) {
      links[i].addEventListener('click', function(e) {
        e.preventDefault();
        window.open(this.href, this.getAttribute('data-name') || 'popup',
                    'width=860,height=760');
      });
    }
    window.addEventListener('message', function(ev) {
      if (ev.origin !== window.location.origin) return;
      var t = ev.data && ev.data.type;
      if (t && /_(added|updated|deleted)$/.test(t)) {
        window.location.reload();
      }
    });
  })();
</script>
"""


def _esc(x: Any) -> str:
    return escape("" if x is None else str(x), quote=True)


def money(value: Optional[Decimal]) -> str:
    if value is None:
        return "-"
    return f"{value:,.2f}"


def _status_pill(status: str) -> str:
    return f"<span class='pill {_esc(status)}'>{_esc(status)}</span>"


def _options(options: Iterable[tuple[str, str]], selected: str, *, blank: Optional[str] = None) -> str:
    out = []
    if blank is not None:
        out.append(f"<option value=''>{_esc(blank)}</option>")
    for value, label in options:
        sel = " selected" if str(value) == str(selected) else ""
        out.append(f"<option value='{_esc(value)}'{sel}>{_esc(label)}</option>")
    return "".join(out)


def _same(values: Iterable[str]) -> list[tuple[str, str]]:
    return [(v, v) for v in values]


# ===== forms =====

# name, label, input kind, required; select options come from CHOICES or the caller
FORM_FIELDS: dict[str, tuple[tuple[str, str, str, bool], ...]] = {
    "client": (
        ("name", "Name", "text", True),
        ("email", "Email", "email", True),
        ("phone", "Phone", "text", True),
        ("contract_amount", "Contract amount", "number", False),
        ("address", "Address", "text", True),
        ("status", "Status", "select", True),
        ("notes", "Notes", "textarea", False),
    ),
    "vendor": (
        ("name", "Name", "text", True),
        ("email", "Email", "email", True),
        ("phone", "Phone", "text", True),
        ("category", "Category", "select", True),
        ("status", "Status", "select", True),
    ),
    "labor": (
        ("name", "Name", "text", True),
        ("phone", "Phone", "text", True),
        ("specialization", "Specialization", "text", True),
        ("status", "Status", "select", True),
        ("notes", "Notes", "textarea", False),
    ),
    "contract": (
        ("title", "Title", "text", True),
        ("client_id", "Client", "select", True),
        ("vendor_id", "Vendor", "select", False),
        ("labor_id", "Labor", "select", False),
        ("contract_amount", "Contract amount", "number", True),
        ("commission_percentage", "Commission %", "number", True),
        ("commission_amount", "Commission amount (blank = from %)", "number", False),
        ("status", "Status", "select", True),
        ("start_date", "Start date", "date", True),
        ("end_date", "End date", "date", False),
        ("description", "Description", "textarea", False),
    ),
    "task": (
        ("title", "Title", "text", True),
        ("status", "Status", "select", True),
        ("due_date", "Due date", "date", True),
        ("client_id", "Client", "select", False),
        ("description", "Description", "textarea", False),
    ),
    "payment": (
        ("amount", "Amount", "number", True),
        ("date", "Date", "date", True),
        ("description", "Description", "textarea", False),
    ),
    "document": (
        ("name", "Name", "text", True),
        ("category", "Category", "text", True),
        ("file", "File", "file", True),
    ),
}

CHOICES: dict[str, list[tuple[str, str]]] = {
    "status": _same(ENTITY_STATUSES),
    "category": _same(VENDOR_CATEGORIES),
}


def form_view(
    kind: str,
    *,
    title: str,
    action: str,
    submit_text: str = "Save",
    values: Optional[dict[str, str]] = None,
    errors: Optional[dict[str, str]] = None,
    hidden: Optional[dict[str, Any]] = None,
    choices: Optional[dict[str, list[tuple[str, str]]]] = None,
) -> str:
    """
    One popup form for every entity. `errors` maps field -> message and is
    shown next to the field; keys without a field go to the top.
    """
    values = values or {}
    errors = errors or {}
    opts = {**CHOICES, **(choices or {})}
    if kind == "task":
        opts["status"] = _same(TASK_STATUSES)

    names = {f[0] for f in FORM_FIELDS[kind]}
    loose = [m for k, m in errors.items() if k not in names]
    err_html = "".join(f'<div class="error">&#9888; {escape(m)}</div>' for m in loose)

    hidden_html = "".join(
        f'<input type="hidden" name="{_esc(k)}" value="{_esc(v)}">'
        for k, v in (hidden or {}).items()
    )

    cells = []
    multipart = False
    for name, label, kind_, required in FORM_FIELDS[kind]:
        v = values.get(name, "")
        req = '<span class="req">*</span>' if required else ""
        if kind_ == "select":
            blank = None if required and name in CHOICES else "-"
            control = f"<select name='{name}'>{_options(opts.get(name, []), v, blank=blank)}</select>"
        elif kind_ == "textarea":
            control = f"<textarea name='{name}' rows='3'>{_esc(v)}</textarea>"
        elif kind_ == "file":
            multipart = True
            control = f"<input type='file' name='{name}'>"
        else:
            step = " step='0.01'" if kind_ == "number" else ""
            control = f"<input type='{kind_}' name='{name}'{step} value='{_esc(v)}'>"
        ferr = f"<div class='field-error'>{escape(errors[name])}</div>" if name in errors else ""
        full = " class='full'" if kind_ in ("textarea", "file") else ""
        cells.append(f"<label{full}>{escape(label)}{req}{control}{ferr}</label>")

    enctype = ' enctype="multipart/form-data"' if multipart else ""
    return f"""
<h1>{escape(title)}</h1>
{err_html}
<form method="POST" action="{_esc(action)}"{enctype}>
  {hidden_html}
  <div class="grid">
    {''.join(cells)}
  </div>
  <div style="margin-top:12px;">
    <button type="submit">{escape(submit_text)}</button>
    <button type="button" onclick="window.close()">Cancel</button>
  </div>
</form>
"""


# ===== list pages =====

def _filters_form(kind: str, filters: dict[str, str], sort: dict[str, str],
                  sortable: Sequence[str]) -> str:
    status_opts = _same(TASK_STATUSES) if kind == "task" else _same(ENTITY_STATUSES)
    parts = [
        f"<div class='row'><span>Search</span><input name='q' value='{_esc(filters.get('q'))}'></div>"
    ]
    if kind != "document":
        parts.append(
            "<div class='row'><span>Status</span><select name='status'>"
            f"{_options(status_opts, filters.get('status', ''), blank='all')}</select></div>"
        )
    if kind in ("client", "contract", "vendor", "labor"):
        parts.append(
            "<div class='row'><span>Payment status</span><select name='payment_status'>"
            f"{_options(_same(PAYMENT_STATUSES), filters.get('payment_status', ''), blank='all')}"
            "</select></div>"
        )
    if kind == "vendor":
        parts.append(
            "<div class='row'><span>Category</span><select name='category'>"
            f"{_options(_same(VENDOR_CATEGORIES), filters.get('category', ''), blank='all')}"
            "</select></div>"
        )
    sb = sort.get("sb", "id")
    sd = sort.get("sd", "asc")
    parts.append(
        "<div class='row'><span>Sort by</span><select name='sb'>"
        f"{_options(_same(sortable), sb)}</select></div>"
        "<div class='row'><span>Direction</span><select name='sd'>"
        f"{_options([('asc', 'ascending'), ('desc', 'descending')], sd)}</select></div>"
    )
    return f"""
<form method="GET" action="/{PLURAL[kind]}" class="filters">
  {''.join(parts)}
  <div class="wide flex">
    <button type="submit">Apply</button>
    <a class="button" href="/{PLURAL[kind]}">Reset</a>
  </div>
</form>
"""


def _pager(page: Page[Any], prev_link: Optional[str], next_link: Optional[str]) -> str:
    return f"""
<div class="flex" style="margin-top:10px;">
  <span class="pill">Page {page.page} of {max(page.page_count, 1)}</span>
  <span class="pill">Total {page.total}</span>
  <span class="right">
    {"<a class='button' href='" + _esc(prev_link) + "'>&larr; Previous</a>" if prev_link else ""}
    {"<a class='button' href='" + _esc(next_link) + "'>Next &rarr;</a>" if next_link else ""}
  </span>
</div>
"""


def _row_buttons(kind: str, entity_id: Any, *, edit: bool = True) -> str:
    btns = [f"<a class='button' href='/{kind}/detail?id={entity_id}'>Open</a>"]
    if edit:
        btns.append(f"<a class='button' data-popup='1' href='/{kind}/edit?id={entity_id}'>Edit</a>")
    btns.append(
        f"<a class='button danger' data-popup='1' href='/{kind}/delete?id={entity_id}'>Delete</a>"
    )
    return "<td class='btns'>" + "".join(btns) + "</td>"


def _balance_cells(b: Optional[Balance]) -> str:
    if b is None:
        return "<td></td><td></td><td></td>"
    return (f"<td class='num'>{money(b.paid)}</td><td class='num'>{money(b.pending)}</td>"
            f"<td>{_status_pill(b.payment_status)}</td>")


def _table_row(kind: str, row: Row[Any]) -> str:
    e = row.entity
    if kind == "client":
        cells = (f"<td>{_esc(e.name)}</td><td>{_esc(e.email)}</td><td>{_esc(e.phone)}</td>"
                 f"<td class='num'>{money(e.contract_amount)}</td>{_balance_cells(row.balance)}"
                 f"<td>{_esc(e.status)}</td>")
    elif kind == "vendor":
        cells = (f"<td>{_esc(e.name)}</td><td>{_esc(e.email)}</td><td>{_esc(e.phone)}</td>"
                 f"<td>{_esc(e.category)}</td>{_balance_cells(row.balance)}<td>{_esc(e.status)}</td>")
    elif kind == "labor":
        cells = (f"<td>{_esc(e.name)}</td><td>{_esc(e.phone)}</td><td>{_esc(e.specialization)}</td>"
                 f"{_balance_cells(row.balance)}<td>{_esc(e.status)}</td>")
    elif kind == "contract":
        cells = (f"<td>{_esc(e.title)}</td><td>{_esc(e.client_name)}</td>"
                 f"<td>{_esc(e.counterparty_name)} <span class='muted'>({e.counterparty_kind})</span></td>"
                 f"<td class='num'>{money(e.contract_amount)}</td>"
                 f"<td class='num'>{money(e.commission_amount)}</td>{_balance_cells(row.balance)}"
                 f"<td>{_esc(e.status)}</td>")
    elif kind == "task":
        cells = (f"<td>{_esc(e.title)}</td><td>{_esc(e.client_name)}</td>"
                 f"<td>{_esc(e.due_date)}</td><td>{_esc(e.status)}</td>")
    else:
        uploaded = e.uploaded_at.strftime("%Y-%m-%d %H:%M") if e.uploaded_at else ""
        cells = (f"<td>{_esc(e.name)}</td><td>{_esc(e.category)}</td><td>{_esc(uploaded)}</td>"
                 f"<td><a class='button' href='/document/download?id={e.id}'>Download</a></td>")
    return f"<tr><td>{e.id}</td>{cells}{_row_buttons(kind, e.id, edit=kind != 'document')}</tr>"


HEADERS: dict[str, tuple[str, ...]] = {
    "client": ("Name", "Email", "Phone", "Amount", "Paid", "Pending", "Payments", "Status"),
    "vendor": ("Name", "Email", "Phone", "Category", "Commission paid", "Pending", "Payments",
               "Status"),
    "labor": ("Name", "Phone", "Specialization", "Commission paid", "Pending", "Payments",
              "Status"),
    "contract": ("Title", "Client", "With", "Amount", "Commission", "Paid", "Pending",
                 "Payments", "Status"),
    "task": ("Title", "Client", "Due", "Status"),
    "document": ("Name", "Category", "Uploaded", "File"),
}


def list_view(
    kind: str,
    result: ListResult[Any],
    *,
    filters: dict[str, str],
    sort: dict[str, str],
    sortable: Sequence[str],
    prev_link: Optional[str],
    next_link: Optional[str],
) -> str:
    rows = "".join(_table_row(kind, r) for r in result.page.items)
    if not rows:
        rows = f"<tr><td colspan='{len(HEADERS[kind]) + 2}' class='muted'>Nothing found.</td></tr>"
    head = "".join(f"<th>{escape(h)}</th>" for h in HEADERS[kind])

    totals = ""
    if result.totals is not None:
        label = "Commission" if kind in ("vendor", "labor", "contract") else "Client amounts"
        totals = (f"<p class='flex'><span class='pill'>{label}: {money(result.totals.principal)}</span>"
                  f"<span class='pill'>Paid: {money(result.totals.paid)}</span>"
                  f"<span class='pill'>Pending: {money(result.totals.pending)}</span></p>")

    add = "/document/upload" if kind == "document" else f"/{kind}/add"
    return f"""
<h1>{TITLES[kind]}s</h1>
{_filters_form(kind, filters, sort, sortable)}
{totals}
<p style="margin: 12px 0 18px;">
  <a class="button" data-popup="1" href="{add}">Add {TITLES[kind].lower()}</a>
</p>
<table>
  <thead><tr><th>ID</th>{head}<th></th></tr></thead>
  <tbody>{rows}</tbody>
</table>
{_pager(result.page, prev_link, next_link)}
"""


# ===== details =====

def _kv_table(pairs: Iterable[tuple[str, Any]]) -> str:
    rows = "".join(f"<tr><th>{escape(k)}</th><td>{v}</td></tr>" for k, v in pairs)
    return f"<table><tbody>{rows}</tbody></table>"


def _balance_pills(label: str, b: Balance) -> str:
    return (f"<p class='flex'><span class='pill'>{escape(label)}: {money(b.principal)}</span>"
            f"<span class='pill'>Paid: {money(b.paid)}</span>"
            f"<span class='pill'>Pending: {money(b.pending)}</span>"
            f"{_status_pill(b.payment_status)}</p>")


def _payments_table(payments: Sequence[Payment]) -> str:
    if not payments:
        return "<p class='muted'>No payments yet.</p>"
    rows = "".join(
        f"<tr><td>{p.date.isoformat()}</td><td class='num'>{money(p.amount)}</td>"
        f"<td>{_esc(p.type)}</td><td>{_esc(p.description)}</td>"
        f"<td><a class='button danger' data-popup='1' href='/payment/delete?id={p.id}'>Delete</a></td></tr>"
        for p in payments
    )
    return ("<table><thead><tr><th>Date</th><th>Amount</th><th>Type</th><th>Description</th>"
            f"<th></th></tr></thead><tbody>{rows}</tbody></table>")


def _contracts_table(rows: Sequence[Row[Any]]) -> str:
    if not rows:
        return "<p class='muted'>No contracts.</p>"
    body = "".join(
        f"<tr><td><a href='/contract/detail?id={r.entity.id}'>{_esc(r.entity.title)}</a></td>"
        f"<td>{_esc(r.entity.client_name)}</td><td>{_esc(r.entity.counterparty_name)}</td>"
        f"<td class='num'>{money(r.entity.commission_amount)}</td>{_balance_cells(r.balance)}</tr>"
        for r in rows
    )
    return ("<table><thead><tr><th>Title</th><th>Client</th><th>With</th><th>Commission</th>"
            "<th>Paid</th><th>Pending</th><th>Payments</th></tr></thead>"
            f"<tbody>{body}</tbody></table>")


def _detail_buttons(kind: str, entity_id: Any, extra: str = "") -> str:
    return (f"<p class='btns'><a class='button' href='/{PLURAL[kind]}'>&larr; Back</a>"
            f"<a class='button' data-popup='1' href='/{kind}/edit?id={entity_id}'>Edit</a>"
            f"<a class='button danger' data-popup='1' href='/{kind}/delete?id={entity_id}'>Delete</a>"
            f"{extra}</p>")


def client_detail_view(d: ClientDetail) -> str:
    c = d.client
    extra = (f"<a class='button' data-popup='1' href='/client/payment/add?client_id={c.id}'>Add payment</a>"
             f"<a class='button' href='/export/entity.csv?kind=client&id={c.id}'>Export CSV</a>")
    return f"""
<h1>{_esc(c.name)}</h1>
{_detail_buttons("client", c.id, extra)}
{_kv_table([("Email", _esc(c.email)), ("Phone", _esc(c.phone)), ("Address", _esc(c.address)),
            ("Contract amount", money(c.contract_amount)), ("Status", _esc(c.status)),
            ("Notes", _esc(c.notes))])}
{_balance_pills("Contract amount", d.balance)}
<h2>Payments</h2>
{_payments_table(d.payments)}
<h2>Contracts</h2>
{_contracts_table(d.contracts)}
"""


def party_detail_view(d: PartyDetail) -> str:
    p = d.party
    if d.kind == "vendor":
        facts = [("Email", _esc(p.email)), ("Phone", _esc(p.phone)),
                 ("Category", _esc(p.category)), ("Status", _esc(p.status))]
    else:
        facts = [("Phone", _esc(p.phone)), ("Specialization", _esc(p.specialization)),
                 ("Status", _esc(p.status)), ("Notes", _esc(p.notes))]
    extra = f"<a class='button' href='/export/entity.csv?kind={d.kind}&id={p.id}'>Export CSV</a>"
    return f"""
<h1>{_esc(p.name)}</h1>
{_detail_buttons(d.kind, p.id, extra)}
{_kv_table(facts)}
{_balance_pills("Commission", d.balance)}
<h2>Contracts</h2>
{_contracts_table(d.contracts)}
<h2>Payments</h2>
{_payments_table(d.payments)}
"""


def contract_detail_view(d: ContractDetail) -> str:
    c = d.contract
    extra = (f"<a class='button' data-popup='1' href='/contract/payment/add?contract_id={c.id}'>"
             "Add payment</a>")
    return f"""
<h1>{_esc(c.title)}</h1>
{_detail_buttons("contract", c.id, extra)}
{_kv_table([("Client", _esc(c.client_name)),
            (c.counterparty_kind.capitalize(), _esc(c.counterparty_name)),
            ("Contract amount", money(c.contract_amount)),
            ("Commission", f"{money(c.commission_amount)} ({c.commission_percentage}%)"),
            ("Status", _esc(c.status)), ("Start", _esc(c.start_date)), ("End", _esc(c.end_date)),
            ("Description", _esc(c.description))])}
{_balance_pills("Commission", d.commission)}
{_balance_pills("Client side", d.client_side)}
<h2>Payments</h2>
{_payments_table(sorted(c.payments, key=lambda p: (p.date, p.id or 0), reverse=True))}
"""


def task_detail_view(t: Task) -> str:
    return f"""
<h1>{_esc(t.title)}</h1>
{_detail_buttons("task", t.id)}
{_kv_table([("Status", _esc(t.status)), ("Due", _esc(t.due_date)),
            ("Client", _esc(t.client_name)), ("Description", _esc(t.description))])}
"""


def document_detail_view(d: Document) -> str:
    return f"""
<h1>{_esc(d.name)}</h1>
<p class='btns'><a class='button' href='/documents'>&larr; Back</a>
<a class='button' href='/document/download?id={d.id}'>Download</a>
<a class='button danger' data-popup='1' href='/document/delete?id={d.id}'>Delete</a></p>
{_kv_table([("Category", _esc(d.category)), ("Uploaded", _esc(d.uploaded_at)),
            ("Object", _esc(d.file_path))])}
"""


# ===== dashboard =====

def dashboard_view(s: DashboardStats) -> str:
    cards = [
        ("Clients", f"{s.total_clients} <span class='muted'>({s.active_clients} active)</span>"),
        ("Vendors", str(s.total_vendors)),
        ("Labor", str(s.total_labors)),
        ("Tasks", str(s.total_tasks)),
        ("Total payments", money(s.total_payments)),
        ("Commission", money(s.commission.principal)),
        ("Commission pending", money(s.commission.pending)),
        ("Client pending", money(s.client_amounts.pending)),
    ]
    cards_html = "".join(f"<div class='card'>{escape(k)}<b>{v}</b></div>" for k, v in cards)

    trend_rows = "".join(
        f"<tr><td>{_esc(t.month)}</td><td class='num'>{money(t.client)}</td>"
        f"<td class='num'>{money(t.vendor)}</td><td class='num'>{money(t.labor)}</td></tr>"
        for t in s.trends
    ) or "<tr><td colspan='4' class='muted'>No payments yet.</td></tr>"

    status_opts = _same(TASK_STATUSES)
    task_rows = "".join(
        f"<tr><td><a href='/task/detail?id={t.id}'>{_esc(t.title)}</a></td>"
        f"<td>{_esc(t.client_name)}</td><td>{_esc(t.due_date)}</td><td>"
        f"<form method='POST' action='/task/status' class='flex'>"
        f"<input type='hidden' name='id' value='{t.id}'>"
        f"<select name='status'>{_options(status_opts, t.status)}</select>"
        f"<button type='submit'>Set</button></form></td></tr>"
        for t in s.upcoming_tasks
    ) or "<tr><td colspan='4' class='muted'>No upcoming tasks.</td></tr>"

    return f"""
<h1>Dashboard</h1>
<div class="cards">{cards_html}</div>
<h2>Monthly payments</h2>
<table><thead><tr><th>Month</th><th>Client</th><th>Vendor</th><th>Labor</th></tr></thead>
<tbody>{trend_rows}</tbody></table>
<h2>Upcoming tasks</h2>
<table><thead><tr><th>Task</th><th>Client</th><th>Due</th><th>Status</th></tr></thead>
<tbody>{task_rows}</tbody></table>
"""


# ===== exports =====

def exports_view(payments: Sequence[Payment], *, filters: dict[str, str],
                 errors: Optional[dict[str, str]] = None) -> str:
    errors = errors or {}
    err_html = "".join(f"<div class='error'>&#9888; {escape(m)}</div>" for m in errors.values())
    rows = "".join(
        f"<tr><td>{p.date.isoformat()}</td><td class='num'>{money(p.amount)}</td>"
        f"<td>{_esc(p.type)}</td><td>{_esc(p.contract_title)}</td><td>{_esc(p.entity_name)}</td>"
        f"<td>{_esc(p.description)}</td></tr>"
        for p in payments
    ) or "<tr><td colspan='6' class='muted'>No payments match.</td></tr>"
    qs = "&".join(f"{k}={_esc(v)}" for k, v in filters.items() if v)
    return f"""
<h1>Exports</h1>
<form method="GET" action="/exports" class="filters">
  <div class="row"><span>Type</span><select name="type">
    {_options(_same(PAYMENT_TYPES), filters.get('type', ''), blank='all')}</select></div>
  <div class="row"><span>From</span><input type="date" name="start" value="{_esc(filters.get('start'))}"></div>
  <div class="row"><span>To</span><input type="date" name="end" value="{_esc(filters.get('end'))}"></div>
  <div class="wide flex">
    <button type="submit">Apply</button>
    <a class="button" href="/export/payments.csv?{qs}">Download CSV</a>
    <span class="right muted">Rows: <b>{len(payments)}</b></span>
  </div>
</form>
{err_html}
<table><thead><tr><th>Date</th><th>Amount</th><th>Type</th><th>Contract</th><th>Entity Name</th>
<th>Description</th></tr></thead><tbody>{rows}</tbody></table>
"""


# ===== misc windows =====

def login_view(*, email: str = "", error: Optional[str] = None, next_url: str = "/") -> str:
    err_html = f'<div class="error">&#9888; {escape(error)}</div>' if error else ""
    return f"""
<h1>Sign in</h1>
{err_html}
<form method="POST" action="/login" style="max-width:360px;">
  <input type="hidden" name="next" value="{_esc(next_url)}">
  <label>Email<input type="email" name="email" value="{_esc(email)}"></label>
  <label>Password<input type="password" name="password"></label>
  <div style="margin-top:12px;"><button type="submit">Sign in</button></div>
</form>
"""


def confirm_delete_view(kind: str, entity_id: int, label: str, *,
                        error: Optional[str] = None) -> str:
    err_html = f'<div class="error">&#9888; {escape(error)}</div>' if error else ""
    cascade = ""
    if kind in ("client", "vendor", "labor", "contract"):
        cascade = "<div class='muted'>Related contracts and payments are deleted too.</div>"
    return f"""
<h1>Delete {TITLES[kind].lower()} #{entity_id}?</h1>
<div class="warnbox">
  <div><b>{escape(label)}</b></div>
  {cascade}
</div>
{err_html}
<form method="POST" action="/{kind}/delete">
  <input type="hidden" name="id" value="{entity_id}">
  <button type="submit" class="button danger">Delete</button>
  <button type="button" class="button" onclick="window.close()">Cancel</button>
</form>
"""


def not_found_view(msg: str = "Not Found") -> bytes:
    return layout("404", f"<h1>404</h1><p>{escape(msg)}</p><p><a href='/'>Dashboard</a></p>")


def success_and_close(message: str, *, event_type: str, payload: Optional[dict[str, Any]] = None) -> str:
    data_js = json.dumps({"type": event_type, "payload": payload or {}}, ensure_ascii=False)
    return f"""
<h2>{escape(message)}</h2>
<p class="muted">This window closes automatically. Close it by hand if it does not.</p>
<script>
  (function(){{
    try {{
      if (window.opener && !window.opener.closed) {{
        window.opener.postMessage({data_js}, window.location.origin);
      }}
    }} catch (e) {{}}
    window.close();
  }})();
</script>
"""
