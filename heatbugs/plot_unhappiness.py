# Unhappiness curve for Heatbugs results files
import argparse

import matplotlib.pyplot as plt
import pandas as pd


def load_results(path):
    """One mean unhappiness per line; the line number is the step."""
    df = pd.read_csv(path, header=None, names=['unhappiness'])
    df.index.name = 'step'
    return df['unhappiness']


def plot_unhappiness(series, window=1, ax=None, title='Heatbugs mean unhappiness'):
    if ax is None:
        fig, ax = plt.subplots(figsize=(8, 4.5))
    else:
        fig = ax.figure
    ax.plot(series.index, series.values, lw=0.8, color='tab:red', label='unhappiness')
    if window > 1:
        smooth = series.rolling(window, min_periods=1).mean()
        ax.plot(smooth.index, smooth.values, lw=1.6, color='black', label=f'rolling mean ({window})')
    ax.set_xlabel('step')
    ax.set_ylabel('mean unhappiness')
    ax.set_title(title)
    ax.grid(alpha=0.3)
    ax.legend()
    fig.tight_layout()
    return fig


def plot_world(model, ax=None):
    """Heat (red) and bug positions (green) of a running model."""
    if ax is None:
        fig, ax = plt.subplots(figsize=(6, 6))
    else:
        fig = ax.figure
    ax.imshow(model.as_rgb(), origin='lower', interpolation='nearest')
    ax.set_title(f'Heatbugs t={model.ticks}')
    ax.set_axis_off()
    fig.tight_layout()
    return fig


def main(argv=None):
    ap = argparse.ArgumentParser(description='Plot a Heatbugs results file.')
    ap.add_argument('results', type=str)
    ap.add_argument('--window', type=int, default=1, help='rolling mean window (1 = off)')
    ap.add_argument('--outfile', type=str, default=None, help='save instead of showing')
    args = ap.parse_args(argv)

    series = load_results(args.results)
    fig = plot_unhappiness(series, window=args.window)
    if args.outfile:
        fig.savefig(args.outfile, dpi=150)
        print(f'Saved plot to {args.outfile}')
    else:
        plt.show()
    plt.close(fig)


if __name__ == '__main__':
    main()
