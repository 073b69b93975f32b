"""
Latency plot for one pitcher run.
"""

import logging
from pathlib import Path
from typing import Union

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns
from matplotlib.dates import DateFormatter

logger = logging.getLogger('Plot')


def plot_latency(df: pd.DataFrame, save_path: Union[str, Path] = 'tcpping_latency.png') -> Path:
    """
    Plot RTT and the A->B / B->A segments over time.

    Args:
        df: frame produced by export.records_to_frame
        save_path: output image file
    """
    sns.set_context("paper", font_scale=1.2)

    fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(12, 8), sharex=True)

    ax1.plot(df['sent_at'], df['rtt_ms'], label='RTT', color='blue', alpha=0.7)
    ax1.set_ylabel('RTT (ms)')
    ax1.set_title('Round Trip Time')
    ax1.grid(True, linestyle='--', alpha=0.7)
    ax1.legend()

    ax2.plot(df['sent_at'], df['a_to_b_ms'], label='A->B', color='green', alpha=0.7)
    ax2.plot(df['sent_at'], df['b_to_a_ms'], label='B->A', color='red', alpha=0.7)
    ax2.set_xlabel('Time (UTC)')
    ax2.set_ylabel('Latency (ms)')
    ax2.set_title('One-way Segments (requires synchronised clocks)')
    ax2.grid(True, linestyle='--', alpha=0.7)
    ax2.legend()
    ax2.xaxis.set_major_formatter(DateFormatter('%H:%M:%S'))

    plt.tight_layout()
    plt.savefig(save_path, dpi=150, bbox_inches='tight')
    plt.close(fig)

    logger.info(f"Saved latency plot to {save_path}")
    return Path(save_path)
