"""
Visualize results from a heat diffusion run

Loads the .npz file written with --output and plots the snapshots.

Usage:
    python -m heat_diffusion.visualize_results heat_mpi_4procs_64x64.npz
    python -m heat_diffusion.visualize_results out.npz --output-dir results/ --fps 20
"""

import argparse
import os
from pathlib import Path

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.animation import FuncAnimation, PillowWriter


def load_results(filename):
    """Load snapshot times, snapshots and final field from an npz file"""
    data = np.load(filename)
    return data['times'], data['snapshots'], data['final']


def create_static_plots(times, snapshots, final):
    """Initial, middle and final temperature maps plus two time series"""
    fig, axes = plt.subplots(2, 3, figsize=(15, 10))

    # Snapshots are indexed [x, y]; transpose so y runs down the image
    if len(snapshots) > 0:
        picks = [(0, 0), (len(snapshots) // 2, 1)]
        for idx, col in picks:
            im = axes[0, col].imshow(snapshots[idx].T, cmap='inferno', origin='lower')
            axes[0, col].set_title(f'Temperature at t={int(times[idx])}')
            plt.colorbar(im, ax=axes[0, col])
    im = axes[0, 2].imshow(final.T, cmap='inferno', origin='lower')
    axes[0, 2].set_title('Final temperature')
    plt.colorbar(im, ax=axes[0, 2])

    size = final.shape[0]
    axes[1, 0].plot(np.arange(size), final[:, 0], 'r-', linewidth=2)
    axes[1, 0].set_xlabel('x')
    axes[1, 0].set_ylabel('Temperature')
    axes[1, 0].set_title('Final temperature along y = 0')
    axes[1, 0].grid(True)

    if len(snapshots) > 0:
        center = snapshots[:, size // 2, size // 2]
        axes[1, 1].plot(times, center, 'b-', linewidth=2)
        total_heat = np.sum(snapshots, axis=(1, 2))
        axes[1, 2].plot(times, total_heat, 'r-', linewidth=2)
    axes[1, 1].set_xlabel('Time step')
    axes[1, 1].set_ylabel('Temperature')
    axes[1, 1].set_title('Temperature at Center')
    axes[1, 1].grid(True)
    axes[1, 2].set_xlabel('Time step')
    axes[1, 2].set_ylabel('Total heat')
    axes[1, 2].set_title('Total Heat Over Time')
    axes[1, 2].grid(True)

    plt.tight_layout()
    return fig


def create_animation(times, snapshots, output_file='heat_animation.gif', fps=10):
    """
    Animate the temperature field over the saved snapshots

    Parameters
    ----------
    times : array
        Timestep of each snapshot
    snapshots : array (n_times, size, size)
        Temperature at each snapshot, indexed [x, y]
    output_file : str
        Output filename (.gif or .mp4)
    fps : int
        Frames per second
    """
    fig, ax = plt.subplots(figsize=(8, 8))

    vmin = 0
    vmax = max(float(np.max(snapshots)), 1e-12)

    im = ax.imshow(snapshots[0].T, cmap='inferno', origin='lower',
                   vmin=vmin, vmax=vmax, animated=True)
    plt.colorbar(im, ax=ax, label='Temperature')
    title = ax.set_title(f'Heat Diffusion\nt = {int(times[0])}')
    ax.set_xlabel('x')
    ax.set_ylabel('y')

    def update(frame):
        im.set_array(snapshots[frame].T)
        title.set_text(f'Heat Diffusion\nt = {int(times[frame])} (frame {frame}/{len(times)-1})')
        return [im, title]

    print(f"Creating animation with {len(times)} frames...")
    anim = FuncAnimation(fig, update, frames=len(times),
                         interval=1000 // fps, blit=True)

    if str(output_file).endswith('.gif'):
        anim.save(output_file, writer=PillowWriter(fps=fps))
    else:
        anim.save(output_file, writer='ffmpeg', fps=fps)

    print(f"Animation saved to: {output_file}")
    plt.close(fig)
    return anim


def main(argv=None):
    parser = argparse.ArgumentParser(description='Plot heat diffusion snapshots')
    parser.add_argument('npz_file', help='File written by heat_mpi/heat_serial --output')
    parser.add_argument('--output-dir', default='output', help='Directory for plots')
    parser.add_argument('--fps', type=int, default=10, help='Animation frames per second')
    parser.add_argument('--no-animation', action='store_true', help='Only write the static plot')
    args = parser.parse_args(argv)

    Path(args.output_dir).mkdir(parents=True, exist_ok=True)
    base_name = Path(args.npz_file).stem

    print(f"Loading results from: {args.npz_file}")
    times, snapshots, final = load_results(args.npz_file)

    print(f"\nSimulation info:")
    print(f"  Grid size: {final.shape}")
    print(f"  Snapshots: {len(times)}")
    print(f"  Final max temperature: {final.max():.6f}")
    print(f"  Final mean temperature: {final.mean():.6f}")
    print()

    fig = create_static_plots(times, snapshots, final)
    png_file = os.path.join(args.output_dir, f'{base_name}.png')
    fig.savefig(png_file, dpi=150, bbox_inches='tight')
    plt.close(fig)
    print(f"✓ Saved: {png_file}")

    if not args.no_animation and len(times) > 1:
        gif_file = os.path.join(args.output_dir, f'{base_name}.gif')
        create_animation(times, snapshots, output_file=gif_file, fps=args.fps)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
