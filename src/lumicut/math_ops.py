from numba import njit
import numpy as np

# =========================================================
# Numba 加速核函数 (In-Place / 无内存分配)
# =========================================================
# All float kernels work on C-contiguous float32 (H, W, 3) arrays in 0..1 and
# clamp after every primitive, matching how chained colour filters behave.


@njit(cache=True)
def apply_color_matrix_inplace(img, matrix):
    rows, cols, _ = img.shape

    m00, m01, m02 = matrix[0, 0], matrix[0, 1], matrix[0, 2]
    m10, m11, m12 = matrix[1, 0], matrix[1, 1], matrix[1, 2]
    m20, m21, m22 = matrix[2, 0], matrix[2, 1], matrix[2, 2]

    for r in range(rows):
        for c in range(cols):
            r_v = img[r, c, 0]
            g_v = img[r, c, 1]
            b_v = img[r, c, 2]

            r_o = r_v * m00 + g_v * m01 + b_v * m02
            g_o = r_v * m10 + g_v * m11 + b_v * m12
            b_o = r_v * m20 + g_v * m21 + b_v * m22

            if r_o < 0.0: r_o = 0.0
            if g_o < 0.0: g_o = 0.0
            if b_o < 0.0: b_o = 0.0
            if r_o > 1.0: r_o = 1.0
            if g_o > 1.0: g_o = 1.0
            if b_o > 1.0: b_o = 1.0

            img[r, c, 0] = r_o
            img[r, c, 1] = g_o
            img[r, c, 2] = b_o


@njit(cache=True)
def apply_linear_transfer_inplace(img, slope, intercept):
    """c' = c * slope + intercept on R, G and B (brightness, contrast, invert)."""
    rows, cols, _ = img.shape
    for r in range(rows):
        for c in range(cols):
            for ch in range(3):
                v = img[r, c, ch] * slope + intercept
                if v < 0.0:
                    v = 0.0
                elif v > 1.0:
                    v = 1.0
                img[r, c, ch] = v


@njit(cache=True)
def apply_channel_luts_inplace(rgba, tables):
    """Per-channel 8-bit lookup on an (H, W, 4) uint8 buffer; alpha untouched."""
    rows, cols, _ = rgba.shape
    lut_r = tables[0]
    lut_g = tables[1]
    lut_b = tables[2]
    for r in range(rows):
        for c in range(cols):
            rgba[r, c, 0] = lut_r[rgba[r, c, 0]]
            rgba[r, c, 1] = lut_g[rgba[r, c, 1]]
            rgba[r, c, 2] = lut_b[rgba[r, c, 2]]


def warmup():
    """Compile the kernels on tiny inputs so the first real export isn't slowed down."""
    img = np.zeros((2, 2, 3), dtype=np.float32)
    apply_color_matrix_inplace(img, np.eye(3, dtype=np.float64))
    apply_linear_transfer_inplace(img, 1.0, 0.0)
    rgba = np.zeros((2, 2, 4), dtype=np.uint8)
    tables = np.tile(np.arange(256, dtype=np.uint8), (3, 1))
    apply_channel_luts_inplace(rgba, tables)
