"""
Dashboard HTML rendering.

``render_dashboard`` is a pure function of the opportunity list and the
venue refresh times. The page re-renders itself from ``/api/data`` every
``DASHBOARD_REFRESH_SECONDS`` using the same markup, built in JavaScript.
"""

from html import escape

from fundarb.config.constants import (
    DASHBOARD_MAX_TIMELINE_ROWS,
    DASHBOARD_REFRESH_SECONDS,
    HOT_ANNUAL_DIFF,
    VENUE_A_NAME,
    VENUE_B_NAME,
)
from fundarb.core.types import EventSource, Opportunity, Timeline, TimelineEvent
from fundarb.funding.rates import format_interval
from fundarb.utils.time import format_timestamp_ms


EVENT_LABELS = {
    EventSource.OPEN: "Open (lock spread)",
    EventSource.VENUE_A: f"{VENUE_A_NAME} funding",
    EventSource.VENUE_B: f"{VENUE_B_NAME} funding",
}

EVENT_CLASSES = {
    EventSource.OPEN: "event-open",
    EventSource.VENUE_A: "event-a",
    EventSource.VENUE_B: "event-b",
}


def _sign_class(value: float) -> str:
    return "positive" if value >= 0 else "negative"


def _signed(value: float, digits: int = 4) -> str:
    return f"{'+' if value >= 0 else ''}{value:.{digits}f}%"


def _funding_cell(value: float) -> str:
    text = _signed(value) if value != 0 else "-"
    return f'<td class="{_sign_class(value)}">{text}</td>'


def _stat(value: float, label: str) -> str:
    return (
        '<div class="timeline-stat">'
        f'<div class="timeline-stat-value {_sign_class(value)}">{_signed(value)}</div>'
        f'<div class="timeline-stat-label">{escape(label)}</div>'
        "</div>"
    )


def render_timeline_rows(events: tuple[TimelineEvent, ...], max_rows: int = DASHBOARD_MAX_TIMELINE_ROWS) -> str:
    """Render timeline events as table rows, truncated to ``max_rows``."""
    rows = []
    for event in events[:max_rows]:
        rows.append(
            "<tr>"
            f"<td>{format_timestamp_ms(event.timestamp_ms)}</td>"
            f'<td class="{EVENT_CLASSES[event.source]}">{EVENT_LABELS[event.source]}</td>'
            f"{_funding_cell(event.venue_a_funding)}"
            f"{_funding_cell(event.venue_b_funding)}"
            f'<td class="{_sign_class(event.net_profit)}">{_signed(event.net_profit)}</td>'
            f'<td class="{_sign_class(event.cumulative_profit)}">{_signed(event.cumulative_profit)}</td>'
            "</tr>"
        )

    hidden = len(events) - max_rows
    if hidden > 0:
        rows.append(f'<tr><td colspan="6" class="more">... {hidden} more events</td></tr>')

    return "".join(rows)


def _render_timeline(timeline: Timeline, idx: int) -> str:
    return (
        f'<tr class="timeline-row" id="timeline-{idx}"><td colspan="9" class="timeline-cell">'
        '<div class="timeline-container"><div class="timeline-header">'
        f"{_stat(timeline.locked_spread_profit, 'Locked spread')}"
        f"{_stat(timeline.venue_a_total_funding, f'{VENUE_A_NAME} funding')}"
        f"{_stat(timeline.venue_b_total_funding, f'{VENUE_B_NAME} funding')}"
        f"{_stat(timeline.final_profit, f'{timeline.simulate_days}d total')}"
        "</div>"
        '<table class="timeline-table"><thead><tr>'
        f"<th>Time</th><th>Event</th><th>{VENUE_A_NAME}</th><th>{VENUE_B_NAME}</th>"
        "<th>Net</th><th>Cumulative</th>"
        "</tr></thead>"
        f"<tbody>{render_timeline_rows(timeline.events)}</tbody></table>"
        "</div></td></tr>"
    )


def render_opportunity_rows(opportunities: list[Opportunity]) -> str:
    """Render the main table body: one summary row plus a hidden timeline row each."""
    parts = []
    for idx, o in enumerate(opportunities):
        hot = " hot" if abs(o.annual_diff) > HOT_ANNUAL_DIFF else ""
        a, b = o.venue_a, o.venue_b
        parts.append(
            f'<tr class="main-row{hot}" data-symbol="{escape(o.symbol.lower())}" data-idx="{idx}" '
            f'onclick="toggleTimeline({idx})">'
            f'<td><span class="expand-icon">&#9654;</span><strong>{escape(o.symbol)}</strong></td>'
            f"<td>${a.price:.4f}</td>"
            f"<td>${b.price:.4f}</td>"
            f'<td class="{_sign_class(a.rate_percent)}">{_signed(a.rate_percent)}'
            f'<span class="interval-tag">{format_interval(a.interval_seconds)}</span></td>'
            f'<td class="{_sign_class(b.rate_percent)}">{_signed(b.rate_percent)}'
            f'<span class="interval-tag">{format_interval(b.interval_seconds)}</span></td>'
            f'<td class="{_sign_class(o.final_profit)}">{_signed(o.final_profit)}</td>'
            f'<td class="{_sign_class(o.annual_diff)}">{_signed(o.annual_diff, 2)}</td>'
            f"<td>{f'${o.profit.daily_profit:.2f}' if o.has_direction else '-'}</td>"
            f'<td class="{"strategy" if o.has_direction else "none"}">{escape(o.strategy)}</td>'
            "</tr>"
        )
        parts.append(_render_timeline(o.timeline, idx))
    return "".join(parts)


def render_dashboard(
    opportunities: list[Opportunity],
    venue_a_refreshed: str | None,
    venue_b_refreshed: str | None,
) -> str:
    """
    Render the full dashboard page.

    Args:
        opportunities: Ranked opportunity list.
        venue_a_refreshed: ISO time venue A last returned data, or None.
        venue_b_refreshed: ISO time venue B last returned data, or None.

    Returns:
        Complete HTML document.
    """
    return (
        DASHBOARD_HTML.replace("{{COUNT}}", str(len(opportunities)))
        .replace("{{A_REFRESH}}", escape(venue_a_refreshed or ""))
        .replace("{{B_REFRESH}}", escape(venue_b_refreshed or ""))
        .replace("{{REFRESH_SECONDS}}", str(DASHBOARD_REFRESH_SECONDS))
        .replace("{{MAX_ROWS}}", str(DASHBOARD_MAX_TIMELINE_ROWS))
        .replace("{{HOT}}", f"{HOT_ANNUAL_DIFF:g}")
        .replace("{{A_NAME}}", VENUE_A_NAME)
        .replace("{{B_NAME}}", VENUE_B_NAME)
        .replace("{{ROWS}}", render_opportunity_rows(opportunities))
    )


DASHBOARD_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{{A_NAME}} vs {{B_NAME}} Funding Arbitrage</title>
    <style>
        :root {
            --bg: #09090b; --bg2: #18181b; --bg3: #27272a;
            --border: #3f3f46; --text: #fafafa; --text2: #a1a1aa; --text3: #71717a;
            --accent: #3b82f6; --green: #22c55e; --red: #ef4444; --yellow: #eab308; --orange: #f97316;
        }
        * { margin: 0; padding: 0; box-sizing: border-box; }
        body { font-family: -apple-system, BlinkMacSystemFont, "Inter", sans-serif; background: var(--bg); color: var(--text); padding: 24px; }
        h1 { font-size: 20px; font-weight: 600; text-align: center; margin-bottom: 12px; }
        .info { text-align: center; margin-bottom: 12px; color: var(--text2); font-size: 12px; }
        .search { margin-bottom: 16px; text-align: center; }
        .search input { padding: 8px 14px; width: 300px; font-size: 14px; background: var(--bg2); border: 1px solid var(--border); border-radius: 6px; color: var(--text); }
        table { width: 100%; border-collapse: collapse; font-size: 13px; font-variant-numeric: tabular-nums; }
        th, td { padding: 8px; text-align: right; border-bottom: 1px solid var(--bg3); }
        th { background: var(--bg2); color: var(--text2); position: sticky; top: 0; z-index: 10; font-weight: 500; }
        td:first-child, th:first-child { text-align: left; }
        .main-row { cursor: pointer; }
        .main-row:hover { background: var(--bg2); }
        .positive { color: var(--green); }
        .negative { color: var(--red); }
        .hot { background: rgba(239,68,68,0.08); }
        .strategy { font-size: 11px; color: var(--yellow); }
        .none { color: var(--text3); }
        .expand-icon { margin-right: 8px; display: inline-block; transition: transform 0.2s; }
        .expanded .expand-icon { transform: rotate(90deg); }
        .timeline-row { display: none; }
        .timeline-row.show { display: table-row; }
        .timeline-cell { padding: 0 !important; background: var(--bg); }
        .timeline-container { padding: 14px 20px; }
        .timeline-header { display: flex; gap: 20px; margin-bottom: 14px; padding: 10px; background: var(--bg2); border-radius: 8px; }
        .timeline-stat { text-align: center; }
        .timeline-stat-value { font-size: 18px; font-weight: 600; }
        .timeline-stat-label { font-size: 11px; color: var(--text3); }
        .timeline-table { font-size: 12px; border: 1px solid var(--bg3); }
        .timeline-table th { background: var(--bg2); padding: 6px 8px; }
        .timeline-table td { padding: 6px 8px; }
        .event-open { color: var(--accent); }
        .event-a { color: var(--green); }
        .event-b { color: var(--orange); }
        .more { text-align: center !important; color: var(--text3); }
        .interval-tag { font-size: 10px; color: var(--text3); background: var(--bg3); padding: 2px 6px; border-radius: 4px; margin-left: 5px; }
    </style>
</head>
<body>
    <h1>{{A_NAME}} vs {{B_NAME}} Funding Arbitrage</h1>
    <div class="info">
        {{A_NAME}} refreshed: <span id="a-time" data-iso="{{A_REFRESH}}">-</span> |
        {{B_NAME}} refreshed: <span id="b-time" data-iso="{{B_REFRESH}}">-</span> |
        <span id="pair-count">{{COUNT}}</span> pairs |
        refresh in <span id="countdown">{{REFRESH_SECONDS}}</span>s | click a row for its timeline
    </div>
    <div class="search">
        <input type="text" id="search" placeholder="Search symbol..." onkeyup="filterRows()">
    </div>
    <table id="table">
        <thead>
            <tr>
                <th>Symbol</th>
                <th>{{A_NAME}} price</th>
                <th>{{B_NAME}} price</th>
                <th>{{A_NAME}} rate<span class="interval-tag">period</span></th>
                <th>{{B_NAME}} rate<span class="interval-tag">period</span></th>
                <th>Simulated %</th>
                <th>Annual diff</th>
                <th>Simulated profit</th>
                <th>Strategy</th>
            </tr>
        </thead>
        <tbody>{{ROWS}}</tbody>
    </table>
    <script>
        const REFRESH_SECONDS = {{REFRESH_SECONDS}};
        const MAX_ROWS = {{MAX_ROWS}};
        const HOT = {{HOT}};
        const EVENT_LABELS = { OPEN: 'Open (lock spread)', VENUE_A: '{{A_NAME}} funding', VENUE_B: '{{B_NAME}} funding' };
        const EVENT_CLASSES = { OPEN: 'event-open', VENUE_A: 'event-a', VENUE_B: 'event-b' };
        let countdown = REFRESH_SECONDS;

        function esc(s) {
            return String(s).replace(/[&<>"']/g, c => ({ '&': '&amp;', '<': '&lt;', '>': '&gt;', '"': '&quot;', "'": '&#39;' }[c]));
        }
        function num(v) { return v === null || v === undefined ? NaN : v; }
        function cls(v) { return num(v) >= 0 ? 'positive' : 'negative'; }
        function signed(v, d) { v = num(v); return (v >= 0 ? '+' : '') + v.toFixed(d === undefined ? 4 : d) + '%'; }
        function fundingCell(v) { return '<td class="' + cls(v) + '">' + (v !== 0 ? signed(v) : '-') + '</td>'; }
        function interval(s) {
            if (s >= 86400) return (s / 86400) + 'd';
            if (s >= 3600) return (s / 3600) + 'h';
            return s + 's';
        }
        function timeText(ms) {
            const d = new Date(ms);
            const p = n => String(n).padStart(2, '0');
            return p(d.getMonth() + 1) + '-' + p(d.getDate()) + ' ' + p(d.getHours()) + ':' + p(d.getMinutes());
        }
        function stat(v, label) {
            return '<div class="timeline-stat"><div class="timeline-stat-value ' + cls(v) + '">' + signed(v) + '</div>' +
                '<div class="timeline-stat-label">' + esc(label) + '</div></div>';
        }
        function timelineRows(events) {
            let html = events.slice(0, MAX_ROWS).map(e =>
                '<tr><td>' + timeText(e.timestamp_ms) + '</td>' +
                '<td class="' + EVENT_CLASSES[e.source] + '">' + EVENT_LABELS[e.source] + '</td>' +
                fundingCell(e.venue_a_funding) + fundingCell(e.venue_b_funding) +
                '<td class="' + cls(e.net_funding + e.spread_profit) + '">' + signed(e.net_funding + e.spread_profit) + '</td>' +
                '<td class="' + cls(e.cumulative_profit) + '">' + signed(e.cumulative_profit) + '</td></tr>'
            ).join('');
            if (events.length > MAX_ROWS) {
                html += '<tr><td colspan="6" class="more">... ' + (events.length - MAX_ROWS) + ' more events</td></tr>';
            }
            return html;
        }
        function renderTable(data) {
            document.querySelector('#table tbody').innerHTML = data.map((o, idx) => {
                const t = o.timeline;
                const active = o.direction !== 'NONE';
                const hot = Math.abs(o.annual_diff) > HOT ? ' hot' : '';
                return '<tr class="main-row' + hot + '" data-symbol="' + esc(o.symbol.toLowerCase()) + '" data-idx="' + idx + '" onclick="toggleTimeline(' + idx + ')">' +
                    '<td><span class="expand-icon">&#9654;</span><strong>' + esc(o.symbol) + '</strong></td>' +
                    '<td>$' + o.venue_a.price.toFixed(4) + '</td>' +
                    '<td>$' + o.venue_b.price.toFixed(4) + '</td>' +
                    '<td class="' + cls(o.venue_a.rate.rate_percent) + '">' + signed(o.venue_a.rate.rate_percent) +
                    '<span class="interval-tag">' + interval(o.venue_a.rate.interval_seconds) + '</span></td>' +
                    '<td class="' + cls(o.venue_b.rate.rate_percent) + '">' + signed(o.venue_b.rate.rate_percent) +
                    '<span class="interval-tag">' + interval(o.venue_b.rate.interval_seconds) + '</span></td>' +
                    '<td class="' + cls(t.final_profit) + '">' + signed(t.final_profit) + '</td>' +
                    '<td class="' + cls(o.annual_diff) + '">' + signed(o.annual_diff, 2) + '</td>' +
                    '<td>' + (active ? '$' + o.profit.daily_profit.toFixed(2) : '-') + '</td>' +
                    '<td class="' + (active ? 'strategy' : 'none') + '">' + esc(o.strategy) + '</td></tr>' +
                    '<tr class="timeline-row" id="timeline-' + idx + '"><td colspan="9" class="timeline-cell">' +
                    '<div class="timeline-container"><div class="timeline-header">' +
                    stat(t.locked_spread_profit, 'Locked spread') +
                    stat(t.venue_a_total_funding, '{{A_NAME}} funding') +
                    stat(t.venue_b_total_funding, '{{B_NAME}} funding') +
                    stat(t.final_profit, t.simulate_days + 'd total') +
                    '</div><table class="timeline-table"><thead><tr><th>Time</th><th>Event</th><th>{{A_NAME}}</th><th>{{B_NAME}}</th><th>Net</th><th>Cumulative</th></tr></thead>' +
                    '<tbody>' + timelineRows(t.events) + '</tbody></table></div></td></tr>';
            }).join('');
            document.getElementById('pair-count').textContent = data.length;
            filterRows();
        }
        function filterRows() {
            const q = document.getElementById('search').value.toLowerCase();
            document.querySelectorAll('#table tbody tr.main-row').forEach(row => {
                const show = row.dataset.symbol.includes(q);
                row.style.display = show ? '' : 'none';
                if (!show) document.getElementById('timeline-' + row.dataset.idx).classList.remove('show');
            });
        }
        function toggleTimeline(idx) {
            document.querySelector('[data-idx="' + idx + '"]').classList.toggle('expanded');
            document.getElementById('timeline-' + idx).classList.toggle('show');
        }
        function showTime(id, iso) {
            if (iso) document.getElementById(id).textContent = new Date(iso).toLocaleTimeString();
        }
        async function fetchData() {
            try {
                const res = await fetch('/api/data');
                const result = await res.json();
                if (result.error) throw new Error(result.error);
                renderTable(result.opportunities);
                showTime('a-time', result.venueARefreshISO);
                showTime('b-time', result.venueBRefreshISO);
            } catch (err) {
                console.error('Refresh failed:', err);
            }
        }
        showTime('a-time', document.getElementById('a-time').dataset.iso);
        showTime('b-time', document.getElementById('b-time').dataset.iso);
        setInterval(() => {
            countdown--;
            if (countdown <= 0) {
                countdown = REFRESH_SECONDS;
                fetchData();
            }
            document.getElementById('countdown').textContent = countdown;
        }, 1000);
    </script>
</body>
</html>"""
