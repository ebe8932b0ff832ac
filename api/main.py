"""
FastAPI main application for the LegalGen Research API.
"""

from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import Any, Optional

import structlog
from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import EmailStr, TypeAdapter, ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from accounts.exceptions import AccountError
from accounts.models import AuthContext
from accounts.users import UserService
from api.auth import get_auth_context
from api.config import config as api_config
from api.mappers import (
    book_to_dto, dto_to_book, dto_to_legal_information, dto_to_legal_information_update,
    legal_information_to_dto, search_result_to_response, user_to_profile
)
from api.models import (
    ApiResponse, ChangePasswordRequest, HealthResponse, LegalInformationDto, LoginRequest,
    LoginResponse, RegisterRequest, ResearchBookDto, ResetPasswordRequest, ShareRequest,
    UserProfile
)
from research.books import ResearchBookService
from research.database import MongoDBManager
from research.models import SearchCriteria
from research.search import SearchEngine
from research.sharing import SharingService
from utilities.config import config
from utilities.logger import bind_request_context, clear_request_context, setup_logging

logger = structlog.get_logger(__name__)

GENERIC_ERROR = "An error occurred while processing your request."

# Path parameters get the same normalization as EmailStr body fields
_email_adapter = TypeAdapter(EmailStr)

# Global services, created in the lifespan handler
db_manager: Optional[MongoDBManager] = None
book_service: Optional[ResearchBookService] = None
search_engine: Optional[SearchEngine] = None
sharing_service: Optional[SharingService] = None
user_service: Optional[UserService] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    global db_manager, book_service, search_engine, sharing_service, user_service

    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.get_log_file_path(),
        debug=config.debug
    )
    logger.info("Starting LegalGen API")

    try:
        db_manager = MongoDBManager(config.mongodb_url, config.mongodb_database)
        await db_manager.connect()
        logger.info("Database connection established")

        book_service = ResearchBookService(db_manager)
        search_engine = SearchEngine(db_manager)
        sharing_service = SharingService(db_manager)
        user_service = UserService(db_manager)

    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        raise

    yield

    logger.info("Shutting down LegalGen API")
    if db_manager:
        await db_manager.disconnect()


app = FastAPI(
    title=api_config.api_title,
    description="""
    Legal research management API.

    ## Features

    * **Research Books**: Create, update and delete research books
    * **Legal Information**: Manage the legal information inside each book
    * **AI Chat**: Keyword search across every book and legal information item
    * **Sharing**: Share research books with other users
    * **Accounts**: Registration, login, password reset and profile

    ## Authentication

    Log in through `/api/user/login` and send the token in the Authorization header:

    ```
    Authorization: Bearer your_token_here
    ```
    """,
    version=api_config.api_version,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=api_config.cors_origins,
    allow_credentials=api_config.cors_allow_credentials,
    allow_methods=api_config.cors_allow_methods,
    allow_headers=api_config.cors_allow_headers,
)


def envelope(message: str, data: Any = None, status_code: int = status.HTTP_200_OK, headers=None) -> JSONResponse:
    """Wrap a payload in the standard response envelope."""
    body = ApiResponse(
        message=message,
        data=jsonable_encoder(data, by_alias=True),
        status_code=status_code
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True),
        headers=headers
    )


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """Attach the request path to every log event emitted while handling it."""
    clear_request_context()
    bind_request_context(path=request.url.path, method=request.method)
    try:
        return await call_next(request)
    finally:
        clear_request_context()


# Exception handlers
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request, exc: StarletteHTTPException):
    """Handle HTTP exceptions."""
    return envelope(str(exc.detail), None, exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc: RequestValidationError):
    """Report invalid input as 400 with one entry per problem."""
    errors = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": error.get("msg", ""),
        }
        for error in exc.errors()
    ]
    logger.warning("Request validation failed", errors=len(errors))
    return envelope("Invalid request.", errors, status.HTTP_400_BAD_REQUEST)


@app.exception_handler(AccountError)
async def account_exception_handler(request, exc: AccountError):
    return envelope(exc.message, exc.errors or None, exc.status_code)


@app.exception_handler(Exception)
async def general_exception_handler(request, exc: Exception):
    """Handle general exceptions."""
    logger.error("Unhandled exception", error=str(exc), path=request.url.path)
    message = f"Internal server error: {exc}" if api_config.debug else "Internal server error"
    return envelope(message, None, status.HTTP_500_INTERNAL_SERVER_ERROR)


def _server_error(action: str, error: Exception, **context) -> HTTPException:
    logger.error(f"An error occurred while {action}", error=str(error), **context)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=GENERIC_ERROR
    )


# Health check endpoint (no authentication required)
@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    try:
        db_status = "unavailable"
        if db_manager:
            health_info = await db_manager.health_check()
            db_status = health_info.get("status", "unknown")

        return HealthResponse(
            status="healthy" if db_status == "healthy" else "degraded",
            timestamp=datetime.now(timezone.utc),
            version=api_config.api_version,
            database_status=db_status
        )
    except Exception as e:
        logger.error("Health check failed", error=str(e))
        return HealthResponse(
            status="unhealthy",
            timestamp=datetime.now(timezone.utc),
            version=api_config.api_version,
            database_status="unhealthy"
        )


# AI chat search
@app.get("/api/AiChat", tags=["AI Chat"])
async def search(
    message: str = Query(..., description="Free-text query"),
    auth: AuthContext = Depends(get_auth_context)
):
    """
    Keyword search across all research books and legal information.

    - **message**: words to look for; each whitespace-separated word is matched as a substring
    """
    try:
        result = await search_engine.search(message, auth)
        return envelope("Search results retrieved successfully.", search_result_to_response(result))
    except HTTPException:
        raise
    except Exception as e:
        raise _server_error("searching", e)


# Research book endpoints
@app.get("/api/ResearchBooks", tags=["Research Books"])
async def get_research_books(auth: AuthContext = Depends(get_auth_context)):
    """List every research book."""
    try:
        books = await book_service.list_books()
        return envelope("Successfully retrieved research books.", [book_to_dto(b) for b in books])
    except HTTPException:
        raise
    except Exception as e:
        raise _server_error("getting research books", e)


@app.get("/api/ResearchBooks/mine", tags=["Research Books"])
async def get_my_research_books(auth: AuthContext = Depends(get_auth_context)):
    """List the research books the caller owns."""
    try:
        books = await book_service.list_books_for_user(auth.user_id)
        return envelope("Successfully retrieved research books.", [book_to_dto(b) for b in books])
    except HTTPException:
        raise
    except Exception as e:
        raise _server_error("getting the caller's research books", e)


@app.get("/api/ResearchBooks/shared", tags=["Sharing"])
async def get_shared_research_books(auth: AuthContext = Depends(get_auth_context)):
    """List the research books other users have shared with the caller."""
    try:
        books = await sharing_service.list_books_shared_with(auth.user_id)
        return envelope("Successfully retrieved shared research books.", [book_to_dto(b) for b in books])
    except HTTPException:
        raise
    except Exception as e:
        raise _server_error("getting shared research books", e)


@app.get("/api/ResearchBooks/legalinformation/search", tags=["Legal Information"])
async def search_legal_information(
    document_type: Optional[str] = None,
    title: Optional[str] = None,
    date_added: Optional[date] = Query(None, alias="date", description="Calendar day (YYYY-MM-DD)"),
    auth: AuthContext = Depends(get_auth_context)
):
    """
    Find legal information across all research books.

    - **document_type**: exact match on the document field
    - **title**: exact match on the title
    - **date**: items added on this day
    """
    try:
        criteria = SearchCriteria(document_type=document_type, title=title, date_added=date_added)
        items = await book_service.search_legal_information(criteria)
        return envelope(
            "Successfully retrieved legal information.",
            [legal_information_to_dto(item) for item in items]
        )
    except HTTPException:
        raise
    except Exception as e:
        raise _server_error("searching legal information", e)


@app.get("/api/ResearchBooks/{book_id}", tags=["Research Books"])
async def get_research_book(book_id: str, auth: AuthContext = Depends(get_auth_context)):
    """Get a single research book by ID."""
    try:
        book = await book_service.get_book(book_id)
        if book is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Research book with ID '{book_id}' not found"
            )
        return envelope("Successfully retrieved research book.", book_to_dto(book))
    except HTTPException:
        raise
    except Exception as e:
        raise _server_error("getting a research book", e, book_id=book_id)


@app.post("/api/ResearchBooks", tags=["Research Books"], status_code=status.HTTP_201_CREATED)
async def create_research_book(dto: ResearchBookDto, auth: AuthContext = Depends(get_auth_context)):
    """Create a research book owned by the caller."""
    try:
        created = await book_service.create_book(dto_to_book(dto, auth.user_id), auth)
        return envelope(
            "Successfully created research book.",
            book_to_dto(created),
            status.HTTP_201_CREATED,
            headers={"Location": f"/api/ResearchBooks/{created.id}"}
        )
    except HTTPException:
        raise
    except Exception as e:
        raise _server_error("creating a research book", e)


@app.put("/api/ResearchBooks/{book_id}", tags=["Research Books"])
async def update_research_book(
    book_id: str,
    dto: ResearchBookDto,
    auth: AuthContext = Depends(get_auth_context)
):
    """Rename a research book. The body's id must match the path."""
    try:
        if dto.id != book_id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Research book ID in the body does not match the path."
            )

        updated = await book_service.update_book(book_id, dto.name)
        if updated is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Research book with ID '{book_id}' not found"
            )
        return envelope("Successfully updated research book.", book_to_dto(updated))
    except HTTPException:
        raise
    except Exception as e:
        raise _server_error("updating a research book", e, book_id=book_id)


@app.delete("/api/ResearchBooks/{book_id}", tags=["Research Books"])
async def delete_research_book(book_id: str, auth: AuthContext = Depends(get_auth_context)):
    """Delete a research book along with its legal information and shares."""
    try:
        deleted = await book_service.delete_book(book_id)
        if not deleted:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Research book with ID '{book_id}' not found"
            )
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except HTTPException:
        raise
    except Exception as e:
        raise _server_error("deleting a research book", e, book_id=book_id)


# Legal information endpoints
@app.get("/api/ResearchBooks/{book_id}/legalinformation", tags=["Legal Information"])
async def get_legal_information_in_book(book_id: str, auth: AuthContext = Depends(get_auth_context)):
    """List the legal information in a research book."""
    try:
        items = await book_service.list_legal_information(book_id)
        if items is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="ResearchBook not found."
            )
        return envelope(
            "Successfully retrieved legal information in ResearchBook.",
            [legal_information_to_dto(item) for item in items]
        )
    except HTTPException:
        raise
    except Exception as e:
        raise _server_error("getting legal information in ResearchBook", e, book_id=book_id)


@app.get("/api/ResearchBooks/{book_id}/legalinformation/{item_id}", tags=["Legal Information"])
async def get_legal_information(book_id: str, item_id: str, auth: AuthContext = Depends(get_auth_context)):
    try:
        item = await book_service.get_legal_information(book_id, item_id)
        if item is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="LegalInformation or ResearchBook not found."
            )
        return envelope("Successfully retrieved legal information.", legal_information_to_dto(item))
    except HTTPException:
        raise
    except Exception as e:
        raise _server_error("getting legal information", e, book_id=book_id, item_id=item_id)


@app.post("/api/ResearchBooks/{book_id}/legalinformation", tags=["Legal Information"])
async def add_legal_information(
    book_id: str,
    dto: LegalInformationDto,
    auth: AuthContext = Depends(get_auth_context)
):
    """Add legal information to a research book."""
    try:
        added = await book_service.add_legal_information(book_id, dto_to_legal_information(dto, book_id))
        if not added:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Research book not found or legal information could not be added."
            )
        return envelope("Legal information added to research book successfully.", True)
    except HTTPException:
        raise
    except Exception as e:
        raise _server_error("adding legal information to research book", e, book_id=book_id)


@app.put("/api/ResearchBooks/{book_id}/legalinformation/{item_id}", tags=["Legal Information"])
async def update_legal_information(
    book_id: str,
    item_id: str,
    dto: LegalInformationDto,
    auth: AuthContext = Depends(get_auth_context)
):
    """Replace the fields of a legal information item."""
    try:
        updated = await book_service.update_legal_information(
            book_id, item_id, dto_to_legal_information_update(dto)
        )
        if not updated:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="LegalInformation or ResearchBook not found."
            )
        return envelope("LegalInformation updated successfully.")
    except HTTPException:
        raise
    except Exception as e:
        raise _server_error("updating LegalInformation", e, book_id=book_id, item_id=item_id)


@app.delete("/api/ResearchBooks/{book_id}/legalinformation/{item_id}", tags=["Legal Information"])
async def delete_legal_information(book_id: str, item_id: str, auth: AuthContext = Depends(get_auth_context)):
    try:
        deleted = await book_service.delete_legal_information(book_id, item_id)
        if not deleted:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="LegalInformation or ResearchBook not found."
            )
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except HTTPException:
        raise
    except Exception as e:
        raise _server_error("deleting LegalInformation", e, book_id=book_id, item_id=item_id)


# Sharing endpoints
@app.post("/api/ResearchBooks/{book_id}/share", tags=["Sharing"])
async def share_research_book(
    book_id: str,
    request: ShareRequest,
    auth: AuthContext = Depends(get_auth_context)
):
    """
    Share a research book with other users.

    Unknown user ids are skipped; the response lists what happened to each one.
    """
    try:
        result = await sharing_service.share_book_with_users(book_id, request.user_ids)
        if not result.book_found:
            return envelope(f"Research book with ID '{book_id}' not found", result, status.HTTP_404_NOT_FOUND)
        return envelope(
            f"Research book shared with {len(result.shared_user_ids)} of {len(request.user_ids)} users.",
            result
        )
    except HTTPException:
        raise
    except Exception as e:
        raise _server_error("sharing a research book", e, book_id=book_id)


@app.get("/api/ResearchBooks/{book_id}/shares", tags=["Sharing"])
async def get_research_book_shares(book_id: str, auth: AuthContext = Depends(get_auth_context)):
    """List the share grants on a research book. Only readers of the book may see them."""
    try:
        book = await book_service.get_book(book_id)
        if book is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Research book with ID '{book_id}' not found"
            )
        if not await sharing_service.has_read_access(book, auth.user_id):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="You do not have access to this research book."
            )
        shares = await sharing_service.list_shares(book_id)
        return envelope("Successfully retrieved research book shares.", shares)
    except HTTPException:
        raise
    except Exception as e:
        raise _server_error("getting research book shares", e, book_id=book_id)


# User endpoints
@app.post("/api/user/register", tags=["User"])
async def register(request: RegisterRequest):
    """Register a new user."""
    try:
        success, errors = await user_service.register(
            email=request.email,
            password=request.password,
            first_name=request.first_name,
            last_name=request.last_name,
            organization=request.organization,
            contact_details=request.contact_details,
        )
        if not success:
            return envelope(
                "User creation failed! Please check user details and try again.",
                errors,
                status.HTTP_400_BAD_REQUEST
            )
        return envelope("User registered successfully!")
    except (HTTPException, AccountError):
        raise
    except Exception as e:
        raise _server_error("registering a user", e)


@app.post("/api/user/login", tags=["User"])
async def login(request: LoginRequest):
    """Log in and receive a bearer token."""
    try:
        token, expires_at = await user_service.login(request.email, request.password)
        return envelope("Login successful.", LoginResponse(jwt_token=token, expiration=expires_at))
    except (HTTPException, AccountError):
        raise
    except Exception as e:
        raise _server_error("logging in", e)


@app.post("/api/user/forget-password/{email}", tags=["User"])
async def forget_password(email: str):
    """Email a password reset token to the user."""
    try:
        try:
            email = _email_adapter.validate_python(email)
        except ValidationError:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid email address."
            )
        await user_service.request_password_reset(email)
        return envelope("Password reset token sent to your email.")
    except (HTTPException, AccountError):
        raise
    except Exception as e:
        raise _server_error("requesting a password reset", e)


@app.post("/api/user/ResetPassword", tags=["User"])
async def reset_password(request: ResetPasswordRequest):
    """Reset a password with the emailed token."""
    try:
        await user_service.reset_password(request.email, request.token, request.password)
        return envelope("Password has been reset successfully.")
    except (HTTPException, AccountError):
        raise
    except Exception as e:
        raise _server_error("resetting a password", e)


@app.post("/api/user/change-password", tags=["User"])
async def change_password(request: ChangePasswordRequest, auth: AuthContext = Depends(get_auth_context)):
    try:
        await user_service.change_password(auth, request.current_password, request.new_password)
        return envelope("Password changed successfully.")
    except (HTTPException, AccountError):
        raise
    except Exception as e:
        raise _server_error("changing a password", e)


@app.get("/api/user/profile-details", tags=["User"])
async def profile_details(auth: AuthContext = Depends(get_auth_context)):
    try:
        user = await user_service.get_profile(auth)
        return envelope("Successfully retrieved profile details.", user_to_profile(user))
    except (HTTPException, AccountError):
        raise
    except Exception as e:
        raise _server_error("getting profile details", e)


@app.put("/api/user/update-profile", tags=["User"])
async def update_profile(profile: UserProfile, auth: AuthContext = Depends(get_auth_context)):
    try:
        user = await user_service.update_profile(
            auth,
            email=profile.email,
            first_name=profile.first_name,
            last_name=profile.last_name,
            organization=profile.organization,
            contact_details=profile.contact_details,
        )
        return envelope("Profile updated successfully.", user_to_profile(user))
    except (HTTPException, AccountError):
        raise
    except Exception as e:
        raise _server_error("updating a profile", e)


@app.get("/api/user/UserId", tags=["User"])
async def get_user_id(auth: AuthContext = Depends(get_auth_context)):
    return envelope("Successfully retrieved user ID.", auth.user_id)


@app.post("/api/user/logout", tags=["User"])
async def logout(auth: AuthContext = Depends(get_auth_context)):
    try:
        await user_service.logout(auth)
        return envelope("Logged out successfully!")
    except (HTTPException, AccountError):
        raise
    except Exception as e:
        raise _server_error("logging out", e)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=api_config.host,
        port=api_config.port,
        reload=api_config.debug,
        log_level="info"
    )
