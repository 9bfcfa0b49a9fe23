"""nativebuild - native executable builds from linked IR and a classpath."""

__version__ = "0.1.0"
