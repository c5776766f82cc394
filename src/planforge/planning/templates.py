"""Phase templates: file manifests, dependencies, and time estimates per phase type."""

from __future__ import annotations

from enum import Enum
from typing import List

from ..schema import FileAction, FileChange, Phase, PhaseStatus, TaskAnalysis


class PhaseId(str, Enum):
    """Stable identifiers for the phase types a plan can contain."""

    SETUP = "phase-setup"
    DATABASE = "phase-database"
    AUTH = "phase-auth"
    BACKEND = "phase-backend"
    FRONTEND = "phase-frontend"
    TESTING = "phase-testing"


PHASE_SEQUENCE = [
    PhaseId.SETUP,
    PhaseId.DATABASE,
    PhaseId.AUTH,
    PhaseId.BACKEND,
    PhaseId.FRONTEND,
    PhaseId.TESTING,
]

ESTIMATED_TIMES = {
    PhaseId.SETUP: "30 minutes",
    PhaseId.DATABASE: "45 minutes",
    PhaseId.AUTH: "60 minutes",
    PhaseId.BACKEND: "90 minutes",
    PhaseId.FRONTEND: "120 minutes",
    PhaseId.TESTING: "60 minutes",
}


def _create(path: str, description: str, *details: str) -> FileChange:
    return FileChange(path=path, action=FileAction.CREATE, description=description, details=list(details))


def _phase(
    phase_id: PhaseId,
    name: str,
    description: str,
    files: List[FileChange],
    dependencies: List[PhaseId],
) -> Phase:
    return Phase(
        id=phase_id.value,
        name=name,
        description=description,
        files=files,
        dependencies=[dependency.value for dependency in dependencies],
        estimated_time=ESTIMATED_TIMES[phase_id],
        status=PhaseStatus.READY,
    )


def _python_init(path: str, description: str) -> FileChange:
    return _create(path, description, "Empty __init__.py file")


def setup_phase(analysis: TaskAnalysis) -> Phase:
    if analysis.has_fastapi:
        files = [
            _create(
                "requirements.txt",
                "Python dependencies",
                "FastAPI and Uvicorn for server",
                "SQLAlchemy for database",
                "Pydantic for validation",
                "Development dependencies",
            ),
            _python_init("app/__init__.py", "Application package initialization"),
            _create(
                "app/main.py",
                "FastAPI application configuration",
                "FastAPI app initialization",
                "CORS middleware setup",
                "Route registration",
            ),
            _create(
                ".env",
                "Environment variables",
                "Database connection string",
                "API keys and secrets",
                "Environment-specific settings",
            ),
        ]
    else:
        files = [
            _create(
                "package.json",
                "Initialize Node.js project with dependencies",
                "Set up TypeScript with strict mode",
                "Add essential dependencies",
                "Configure build and dev scripts",
            ),
            _create(
                "tsconfig.json",
                "TypeScript configuration",
                "Enable strict type checking",
                "Set module resolution to Node",
                "Configure path aliases for clean imports",
            ),
            _create(
                "src/types/index.ts",
                "Define core TypeScript interfaces",
                "Create domain models",
                "Define API request/response types",
                "Add utility types",
            ),
        ]
    return _phase(
        PhaseId.SETUP,
        "Project Setup & Architecture",
        "Initialize project structure and configure development environment",
        files,
        [],
    )


def _python_domain_model(analysis: TaskAnalysis) -> FileChange:
    if analysis.has_fintech:
        return _create(
            "app/models/loan.py",
            "Loan model definition",
            "SQLAlchemy model for loans table",
            "Credit score and payment history",
            "Compliance and audit fields",
            "Define relationships and constraints",
        )
    if analysis.has_ecommerce:
        return _create(
            "app/models/product.py",
            "Product model definition",
            "SQLAlchemy model for products table",
            "Category and inventory relationships",
            "Price and variant management",
            "Define relationships and constraints",
        )
    return _create(
        "app/models/base.py",
        "Base model definition",
        "SQLAlchemy base model",
        "Common fields and relationships",
        "Add validation and indexes",
    )


def database_phase(analysis: TaskAnalysis) -> Phase:
    if analysis.has_fastapi:
        files = [
            _create(
                "app/database.py",
                "Database configuration and connection",
                "SQLAlchemy engine setup",
                "Database session management",
                "Connection pooling configuration",
            ),
            _python_init("app/models/__init__.py", "Models package initialization"),
            _python_domain_model(analysis),
            _create(
                "alembic.ini",
                "Alembic configuration",
                "Database migration tool setup",
                "Connection string configuration",
            ),
            _create(
                "alembic/env.py",
                "Alembic environment configuration",
                "Migration environment setup",
                "Model metadata configuration",
            ),
        ]
    else:
        files = [
            _create(
                "src/database/schema.sql",
                "Database schema definition",
                "Create tables based on domain requirements",
                "Define relationships and constraints",
                "Add indexes for performance",
            ),
            _create(
                "src/database/migrations/001_initial.sql",
                "Initial database migration",
                "Create migration script",
                "Include rollback instructions",
                "Add data seeding if needed",
            ),
        ]

    if analysis.has_auth:
        files.append(
            _create(
                "src/database/models/User.ts",
                "User model definition",
                "Define user schema",
                "Add authentication fields",
                "Include validation rules",
            )
        )

    return _phase(
        PhaseId.DATABASE,
        "Database Design & Setup",
        "Design and implement database schema with proper relationships",
        files,
        [PhaseId.SETUP],
    )


def auth_phase(analysis: TaskAnalysis) -> Phase:
    files = [
        _create(
            "src/auth/middleware.ts",
            "Authentication middleware",
            "JWT token validation",
            "Role-based access control",
            "Session management",
        ),
        _create(
            "src/auth/routes.ts",
            "Authentication routes",
            "Login and register endpoints",
            "Password reset functionality",
            "Token refresh mechanism",
        ),
        _create(
            "src/auth/utils.ts",
            "Authentication utilities",
            "Password hashing with bcrypt",
            "JWT token generation",
            "Validation helpers",
        ),
    ]
    return _phase(
        PhaseId.AUTH,
        "Authentication System",
        "Implement user authentication and authorization",
        files,
        [PhaseId.SETUP, PhaseId.DATABASE],
    )


def _domain_routes(analysis: TaskAnalysis, *, python: bool) -> FileChange:
    if analysis.has_fintech:
        return _create(
            "app/routers/loans.py" if python else "src/routes/loans.ts",
            "Loan management API routes" if python else "Loan management routes",
            "Loan application endpoints",
            "Credit scoring integration",
            "Payment processing routes",
            "Compliance and audit logging",
        )
    if analysis.has_ecommerce:
        return _create(
            "app/routers/products.py" if python else "src/routes/products.ts",
            "Product catalog API routes" if python else "Product catalog routes",
            "Product CRUD operations",
            "Inventory management",
            "Category management",
            "Search and filtering",
        )
    if python:
        return _create(
            "app/routers/api.py",
            "Main API routes",
            "RESTful endpoint structure",
            "Request/response models",
            "Error handling",
            "Database integration",
        )
    return _create(
        "src/routes/index.ts",
        "API route definitions",
        "RESTful endpoint structure",
        "Request validation",
        "Error handling",
    )


def _python_data_models(analysis: TaskAnalysis) -> FileChange:
    if analysis.has_fintech:
        return _create(
            "app/models/loan.py",
            "Loan data models",
            "Loan application model",
            "Credit score model",
            "Payment history model",
            "Compliance tracking model",
        )
    if analysis.has_ecommerce:
        return _create(
            "app/models/product.py",
            "Product data models",
            "Product model with variants",
            "Category model",
            "Inventory model",
            "Order model",
        )
    return _create(
        "app/models/base.py",
        "Base data models",
        "Pydantic models for validation",
        "Database models",
        "Response schemas",
    )


def backend_phase(analysis: TaskAnalysis) -> Phase:
    if analysis.has_fastapi:
        files = [
            _create(
                "main.py",
                "FastAPI application entry point",
                "FastAPI app initialization",
                "Middleware configuration",
                "Route registration",
                "CORS setup",
            ),
            _python_init("app/routers/__init__.py", "Router package initialization"),
            _domain_routes(analysis, python=True),
            _python_init("app/models/__init__.py", "Models package initialization"),
            _python_data_models(analysis),
            _create(
                "app/database.py",
                "Database configuration",
                "SQLAlchemy setup",
                "Database connection",
                "Session management",
            ),
            _create(
                "requirements.txt",
                "Python dependencies",
                "FastAPI and Uvicorn",
                "SQLAlchemy and database drivers",
                "Pydantic for validation",
            ),
        ]
    else:
        files = [
            _create(
                "src/server.ts",
                "Main server entry point",
                "Express.js server setup",
                "Middleware configuration",
                "Route registration",
            ),
            _domain_routes(analysis, python=False),
        ]

    if analysis.has_realtime:
        files.append(
            _create(
                "src/websocket/handler.ts",
                "WebSocket connection handler",
                "Socket.io integration",
                "Room management",
                "Real-time event handling",
            )
        )

    return _phase(
        PhaseId.BACKEND,
        "Backend API Development",
        "Build RESTful API with proper error handling and validation",
        files,
        [PhaseId.DATABASE] if analysis.has_database else [PhaseId.SETUP],
    )


def frontend_phase(analysis: TaskAnalysis) -> Phase:
    files = [
        _create(
            "src/components/App.tsx",
            "Main application component",
            "React component structure",
            "State management setup",
            "Routing configuration",
        ),
        _create(
            "src/components/Layout.tsx",
            "Application layout wrapper",
            "Header and navigation",
            "Footer component",
            "Responsive design",
        ),
    ]

    if analysis.has_fintech:
        files.extend(
            [
                _create(
                    "src/components/LoanApplication.tsx",
                    "Loan application form component",
                    "Multi-step loan application form",
                    "Credit score display",
                    "Document upload functionality",
                    "Progress tracking",
                ),
                _create(
                    "src/components/LoanDashboard.tsx",
                    "Loan management dashboard",
                    "Loan status overview",
                    "Payment history display",
                    "Compliance reporting",
                    "Financial calculations",
                ),
            ]
        )
    elif analysis.has_ecommerce:
        files.extend(
            [
                _create(
                    "src/components/ProductCatalog.tsx",
                    "Product catalog component",
                    "Product grid display",
                    "Search and filtering",
                    "Category navigation",
                    "Product details modal",
                ),
                _create(
                    "src/components/ShoppingCart.tsx",
                    "Shopping cart component",
                    "Cart item management",
                    "Quantity updates",
                    "Price calculations",
                    "Checkout integration",
                ),
            ]
        )

    if analysis.has_auth:
        files.append(
            _create(
                "src/components/Auth/LoginForm.tsx",
                "User login form",
                "Form validation",
                "API integration",
                "Error handling",
            )
        )

    return _phase(
        PhaseId.FRONTEND,
        "Frontend Development",
        "Build responsive user interface with modern React patterns",
        files,
        [PhaseId.BACKEND] if analysis.has_backend else [PhaseId.SETUP],
    )


def testing_phase(analysis: TaskAnalysis) -> Phase:
    if analysis.has_fastapi:
        files = [
            _create(
                "pytest.ini",
                "Pytest configuration",
                "Test discovery settings",
                "Coverage reporting",
                "Test markers and options",
            ),
            _create(
                "conftest.py",
                "Pytest fixtures and configuration",
                "Test database setup",
                "FastAPI test client fixtures",
                "Common test utilities",
            ),
        ]
    else:
        files = [
            _create(
                "jest.config.js",
                "Jest testing configuration",
                "Test environment setup",
                "Coverage reporting",
                "Mock configurations",
            )
        ]

    if analysis.has_backend:
        if analysis.has_fastapi:
            files.append(
                _create(
                    "tests/test_api.py",
                    "FastAPI endpoint tests",
                    "Integration tests for routes",
                    "Authentication testing",
                    "Error scenario coverage",
                    "Pydantic model validation",
                )
            )
        else:
            files.append(
                _create(
                    "src/__tests__/api.test.ts",
                    "API endpoint tests",
                    "Integration tests for routes",
                    "Authentication testing",
                    "Error scenario coverage",
                )
            )

    if analysis.has_frontend:
        files.append(
            _create(
                "src/__tests__/components.test.tsx",
                "Component unit tests",
                "React Testing Library setup",
                "Component behavior testing",
                "User interaction testing",
            )
        )

    if analysis.has_frontend:
        dependencies = [PhaseId.FRONTEND]
    elif analysis.has_backend:
        dependencies = [PhaseId.BACKEND]
    else:
        dependencies = [PhaseId.SETUP]

    return _phase(
        PhaseId.TESTING,
        "Testing & Quality Assurance",
        "Implement comprehensive test suite for reliability",
        files,
        dependencies,
    )


__all__ = [
    "ESTIMATED_TIMES",
    "PHASE_SEQUENCE",
    "PhaseId",
    "auth_phase",
    "backend_phase",
    "database_phase",
    "frontend_phase",
    "setup_phase",
    "testing_phase",
]
