def render_status(context, width):
    """
    context keys: mode, message, table, table_pos, page_index, page_total,
                  total_rows, row
    """
    mode = context.get('mode', 'NORMAL')
    table = context.get('table') or ''
    pos, count = context.get('table_pos', (0, 0))
    page_index = context.get('page_index', 1)
    page_total = context.get('page_total', 1)
    total_rows = context.get('total_rows', 0)
    row = context.get('row', 0)
    page_info = f"Page {page_index}/{page_total} row {row} of {total_rows}"
    text = f" {mode} | {table} ({pos}/{count}) | {page_info}"
    message = context.get('message')
    if message:
        text = f"{text} | {message}"
    return text.ljust(width)[:width]
