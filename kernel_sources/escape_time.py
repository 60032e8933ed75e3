# Pixel grid -> complex plane: c = (x/W * 3.0 - 2.25, y/H * 3.0 - 1.5).
# Real axis spans [-2.25, 0.75], imaginary axis [-1.5, 1.5]; no aspect correction.
PLANE_SCALE = 3.0
REAL_OFFSET = 2.25
IMAG_OFFSET = 1.5

# Fixed escape test |z| > 4.0, applied after each update of z.
ESCAPE_RADIUS = 4.0

MAX_ITERATIONS = 50

PRECISIONS = ("f32", "f64")
