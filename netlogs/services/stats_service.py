import numpy as np
import pandas as pd

SCALAR_METRICS = {
    'download': 'nq_download_mbps',
    'upload': 'nq_upload_mbps',
    'responsiveness': 'nq_responsiveness_rpm',
    'speedtest_download': 'st_download_mbps',
    'speedtest_upload': 'st_upload_mbps',
    'speedtest_ping': 'st_ping_ms',
}


def summarize(values) -> dict:
    """count/avg/min/max/p95 of the non-null values; p95 is the floor-rank sample."""
    series = pd.to_numeric(pd.Series(values), errors='coerce').dropna()
    if series.empty:
        return {'count': 0, 'avg': None, 'min': None, 'max': None, 'p95': None}

    ordered = np.sort(series.to_numpy())
    p95 = ordered[int(len(ordered) * 0.95)]
    return {
        'count': int(len(ordered)),
        'avg': round(float(ordered.mean()), 3),
        'min': round(float(ordered[0]), 3),
        'max': round(float(ordered[-1]), 3),
        'p95': round(float(p95), 3),
    }


def _ping_frame(rows: list) -> pd.DataFrame:
    records = []
    for row in rows:
        for result in row.get('ping_results') or []:
            rtt = result.get('rttStats') or {}
            records.append({
                'id': result.get('id'),
                'name': result.get('name'),
                'latency': rtt.get('avg'),
                'packet_loss': result.get('packetLossPercent'),
            })
    return pd.DataFrame(records, columns=['id', 'name', 'latency', 'packet_loss'])


def build_stats(rows: list) -> dict:
    """Summary statistics over persisted rows (as returned by QueryService)."""
    df = pd.DataFrame(rows, columns=['timestamp', *SCALAR_METRICS.values()])
    stats = {
        'entries': int(len(df)),
        'from': df['timestamp'].min() if not df.empty else None,
        'to': df['timestamp'].max() if not df.empty else None,
    }
    for name, column in SCALAR_METRICS.items():
        stats[name] = summarize(df[column])

    ping = {}
    df_ping = _ping_frame(rows)
    for target_id, group in df_ping.groupby('id', sort=True):
        ping[target_id] = {
            'name': group['name'].iloc[0],  # rows arrive newest first
            'latency': summarize(group['latency']),
            'packet_loss': summarize(group['packet_loss']),
        }
    stats['ping'] = ping
    return stats
