"""Card routes.

Domain errors propagate to the handlers registered in ``create_app``; routes
only translate request bodies and shape responses.
"""

from __future__ import annotations

from fastapi import APIRouter, Response

from ...merge.models import KeepExisting, Replace, Resolution, SaveAsNew
from ..deps import CurrentUser, Store
from . import service
from .models import (
    BingoLineResponse,
    BulkArchiveRequest,
    BulkRequest,
    BulkResponse,
    BulkVisibilityRequest,
    CardCreate,
    CardResponse,
    CloneRequest,
    CloneResponse,
    CompleteRequest,
    ConfigUpdate,
    ErrorResponse,
    FinalizeRequest,
    ImportRequest,
    ItemAddResponse,
    ItemCreate,
    ItemUpdate,
    MetaUpdate,
    NotesUpdate,
    ResolveRequest,
    StatsResponse,
    SwapRequest,
    VisibilityUpdate,
)

router = APIRouter(
    prefix="/api",
    tags=["cards"],
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)


# --- Card CRUD ---


@router.get("/cards", response_model=list[CardResponse])
async def list_cards(user: CurrentUser, store: Store):
    return [CardResponse.of(c) for c in await service.list_cards(store, user["sub"])]


@router.post("/cards", response_model=CardResponse, status_code=201)
async def create_card(body: CardCreate, user: CurrentUser, store: Store):
    card = await service.create_card(
        store,
        user["sub"],
        body.year,
        title=body.title,
        category=body.category,
        grid_size=body.grid_size,
        header_text=body.header_text,
        has_free_space=body.has_free_space,
    )
    return CardResponse.of(card)


# Registered before /cards/{card_id} so "archive" is not read as an id.
@router.get("/cards/archive", response_model=list[CardResponse])
async def get_archive(user: CurrentUser, store: Store):
    return [CardResponse.of(c) for c in await service.get_archive(store, user["sub"])]


@router.get("/cards/{card_id}", response_model=CardResponse)
async def get_card(card_id: str, user: CurrentUser, store: Store):
    return CardResponse.of(await service.get_card(store, user["sub"], card_id))


@router.delete("/cards/{card_id}", status_code=204)
async def delete_card(card_id: str, user: CurrentUser, store: Store):
    await service.delete_card(store, user["sub"], card_id)
    return Response(status_code=204)


# --- Draft editing ---


@router.post("/cards/{card_id}/items", response_model=ItemAddResponse, status_code=201)
async def add_item(card_id: str, body: ItemCreate, user: CurrentUser, store: Store):
    card, position = await service.add_item(
        store, user["sub"], card_id, body.content, body.position
    )
    return ItemAddResponse(card=CardResponse.of(card), position=position)


@router.patch("/cards/{card_id}/items/{position}", response_model=CardResponse)
async def update_item(
    card_id: str, position: int, body: ItemUpdate, user: CurrentUser, store: Store
):
    card = await service.update_item(store, user["sub"], card_id, position, body.content)
    return CardResponse.of(card)


@router.delete("/cards/{card_id}/items/{position}", response_model=CardResponse)
async def remove_item(card_id: str, position: int, user: CurrentUser, store: Store):
    return CardResponse.of(await service.remove_item(store, user["sub"], card_id, position))


@router.post("/cards/{card_id}/swap", response_model=CardResponse)
async def swap_items(card_id: str, body: SwapRequest, user: CurrentUser, store: Store):
    card = await service.swap_items(
        store, user["sub"], card_id, body.position_a, body.position_b
    )
    return CardResponse.of(card)


@router.post("/cards/{card_id}/shuffle", response_model=CardResponse)
async def shuffle(card_id: str, user: CurrentUser, store: Store):
    return CardResponse.of(await service.shuffle(store, user["sub"], card_id))


@router.patch("/cards/{card_id}/config", response_model=CardResponse)
async def update_config(card_id: str, body: ConfigUpdate, user: CurrentUser, store: Store):
    card = await service.update_draft_config(
        store, user["sub"], card_id, body.header_text, body.has_free_space
    )
    return CardResponse.of(card)


@router.patch("/cards/{card_id}/meta", response_model=CardResponse)
async def update_meta(card_id: str, body: MetaUpdate, user: CurrentUser, store: Store):
    # Fields left out stay as they are; an explicit null clears them.
    changes = body.model_dump(exclude_unset=True)
    return CardResponse.of(await service.update_meta(store, user["sub"], card_id, **changes))


@router.post("/cards/{card_id}/finalize", response_model=CardResponse)
async def finalize(card_id: str, body: FinalizeRequest, user: CurrentUser, store: Store):
    card = await service.finalize(store, user["sub"], card_id, body.visible_to_friends)
    return CardResponse.of(card)


# --- Finalized card ---


@router.post("/cards/{card_id}/items/{position}/complete", response_model=CardResponse)
async def complete_item(
    card_id: str, position: int, body: CompleteRequest, user: CurrentUser, store: Store
):
    card = await service.complete_item(store, user["sub"], card_id, position, body.notes)
    return CardResponse.of(card)


@router.delete("/cards/{card_id}/items/{position}/complete", response_model=CardResponse)
async def uncomplete_item(card_id: str, position: int, user: CurrentUser, store: Store):
    card = await service.uncomplete_item(store, user["sub"], card_id, position)
    return CardResponse.of(card)


@router.put("/cards/{card_id}/items/{position}/notes", response_model=CardResponse)
async def update_item_notes(
    card_id: str, position: int, body: NotesUpdate, user: CurrentUser, store: Store
):
    card = await service.update_item_notes(store, user["sub"], card_id, position, body.notes)
    return CardResponse.of(card)


@router.patch("/cards/{card_id}/visibility", response_model=CardResponse)
async def update_visibility(
    card_id: str, body: VisibilityUpdate, user: CurrentUser, store: Store
):
    card = await service.update_visibility(
        store, user["sub"], card_id, body.visible_to_friends
    )
    return CardResponse.of(card)


@router.post("/cards/{card_id}/clone", response_model=CloneResponse, status_code=201)
async def clone_card(card_id: str, body: CloneRequest, user: CurrentUser, store: Store):
    result = await service.clone_card(store, user["sub"], card_id, **body.model_dump())
    return CloneResponse(
        card=CardResponse.of(result.card), truncated_item_count=result.truncated_item_count
    )


@router.get("/cards/{card_id}/stats", response_model=StatsResponse)
async def get_stats(card_id: str, user: CurrentUser, store: Store):
    return StatsResponse.of(await service.get_stats(store, user["sub"], card_id))


@router.get("/cards/{card_id}/bingos", response_model=list[BingoLineResponse])
async def get_bingos(card_id: str, user: CurrentUser, store: Store):
    lines = await service.get_bingos(store, user["sub"], card_id)
    return [BingoLineResponse.of(line) for line in lines]


# --- Local draft import ---


@router.post("/cards/import", response_model=CardResponse, status_code=201)
async def import_local_card(body: ImportRequest, user: CurrentUser, store: Store):
    card = await service.import_local_card(store, user["sub"], body.snapshot)
    return CardResponse.of(card)


@router.post("/cards/import/resolve", response_model=CardResponse)
async def resolve_conflict(body: ResolveRequest, user: CurrentUser, store: Store):
    resolution: Resolution
    if body.resolution == "keep_existing":
        resolution = KeepExisting()
    elif body.resolution == "save_as_new":
        resolution = SaveAsNew(title=body.title or "")
    else:
        resolution = Replace(confirmed=body.confirmed)
    card = await service.resolve_conflict(
        store, user["sub"], body.snapshot, resolution, body.existing_card_id
    )
    return CardResponse.of(card)


# --- Bulk actions ---


@router.post("/cards/bulk/visibility", response_model=BulkResponse)
async def bulk_update_visibility(body: BulkVisibilityRequest, user: CurrentUser, store: Store):
    count = await service.bulk_update_visibility(
        store, user["sub"], body.card_ids, body.visible_to_friends
    )
    return BulkResponse(count=count)


@router.post("/cards/bulk/archive", response_model=BulkResponse)
async def bulk_update_archive(body: BulkArchiveRequest, user: CurrentUser, store: Store):
    count = await service.bulk_update_archive(store, user["sub"], body.card_ids, body.is_archived)
    return BulkResponse(count=count)


@router.post("/cards/bulk/delete", response_model=BulkResponse)
async def bulk_delete(body: BulkRequest, user: CurrentUser, store: Store):
    return BulkResponse(count=await service.bulk_delete(store, user["sub"], body.card_ids))
